from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter

from .config import ClientConfig
from .error_mapper import map_error
from .exceptions import ApiError, RequestTimeoutError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class LastOperation:
    operation: str
    duration_ms: int
    result: str
    status_code: int


@dataclass
class HttpClient:
    config: ClientConfig
    session: requests.Session | None = None
    last_operation: LastOperation | None = None

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=self.config.max_connections,
                pool_maxsize=self.config.max_connections,
            )
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def _build_url(self, path: str) -> str:
        base = self.config.api_base_url.rstrip("/") + "/"
        return urljoin(base, path.lstrip("/"))

    def request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
        files: dict[str, Any] | list[tuple[str, Any]] | None = None,
        params: dict[str, Any] | None = None,
        token: str | None = None,
        tolerate_text: bool = False,
        operation: str = "unknown",
    ) -> dict[str, Any] | list[Any] | None:
        if self.session is None:
            raise RuntimeError("HTTP session not initialized")
        request_headers = {
            "Accept": "application/json",
            "X-Client-App": self.config.client_app,
            "X-Request-Time": datetime.now(timezone.utc).isoformat(),
        }
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        if headers:
            request_headers.update(headers)
        if files is not None:
            # the transport sets the multipart boundary itself
            request_headers.pop("Content-Type", None)

        normalized_method = method.upper()
        url = self._build_url(path)
        started = time.monotonic()
        try:
            response = self.session.request(
                method=normalized_method,
                url=url,
                headers=request_headers,
                json=json_body if files is None else None,
                files=files,
                params=params,
                timeout=(self.config.connect_timeout_seconds, self.config.read_timeout_seconds),
                verify=self.config.verify_ssl,
            )
        except requests.Timeout as exc:
            self._record_operation(operation, started, "timeout", 0)
            logger.warning("http_timeout", extra={"operation": operation, "method": normalized_method, "path": path})
            raise RequestTimeoutError(
                code="TIMEOUT",
                message=str(exc),
                details={"type": type(exc).__name__},
                status_code=0,
            ) from exc
        except requests.RequestException as exc:
            self._record_operation(operation, started, "transport_error", 0)
            logger.warning("http_transport_error", extra={"operation": operation, "method": normalized_method, "path": path})
            raise TransportError(
                code="TRANSPORT_ERROR",
                message=str(exc),
                details={"type": type(exc).__name__},
                status_code=0,
            ) from exc

        if response.ok:
            self._record_operation(operation, started, "success", response.status_code)
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as exc:
                if tolerate_text:
                    return {"message": response.text}
                raise ApiError(
                    code="INVALID_JSON",
                    message="Response body is not valid JSON",
                    details={"body": response.text[:200]},
                    status_code=response.status_code,
                ) from exc

        payload: Any
        try:
            payload = response.json()
        except ValueError:
            payload = {"message": response.text}
        if not isinstance(payload, dict):
            payload = {"message": json.dumps(payload)}
        self._record_operation(operation, started, "error", response.status_code)
        logger.warning(
            "http_error_response",
            extra={"operation": operation, "method": normalized_method, "path": path, "status": response.status_code},
        )
        raise map_error(response.status_code, payload)

    def _record_operation(self, operation: str, started: float, result: str, status_code: int) -> None:
        self.last_operation = LastOperation(
            operation=operation,
            duration_ms=int((time.monotonic() - started) * 1000),
            result=result,
            status_code=status_code,
        )
