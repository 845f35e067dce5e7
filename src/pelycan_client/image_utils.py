from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import BinaryIO
from urllib.parse import unquote, urlparse

DEFAULT_IMAGE_TYPE = "image/jpeg"
UPLOAD_FAILED_URL = "error-image-url"
MISSING_URL_PLACEHOLDER = "local-image-url"

ImagePart = tuple[str, BinaryIO, str]


def image_file_name(uri: str) -> str:
    """Last path segment of a local file URI or path."""
    path = unquote(urlparse(uri).path or uri)
    return path.rstrip("/").split("/")[-1] or "image.jpg"


def local_path(uri: str) -> Path:
    parsed = urlparse(uri)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(uri)


def open_image_part(uri: str) -> ImagePart:
    name = image_file_name(uri)
    content_type = mimetypes.guess_type(name)[0] or DEFAULT_IMAGE_TYPE
    return name, local_path(uri).open("rb"), content_type


def close_parts(parts: list[tuple[str, ImagePart]]) -> None:
    for _, (_, handle, _) in parts:
        handle.close()
