from __future__ import annotations

import json

import pytest
import responses

from pelycan_client.auth_store import AuthStore
from pelycan_client.config import ClientConfig
from pelycan_client.kv_store import KeyValueStore
from pelycan_client.models import LoginResult
from pelycan_client.session import ApiSession


def _login_payload() -> dict:
    return {
        "data": {
            "token": "jwt-1",
            "user": {"id": 7, "role": "user", "email": "marie@example.com", "name": "Marie"},
        }
    }


def test_auth_store_save_load_clear(store: KeyValueStore) -> None:
    auth = AuthStore(store)
    auth.save(LoginResult.from_response(_login_payload()))

    session = auth.load()
    assert session is not None
    assert session.token == "jwt-1"
    assert session.user_id == "7"
    assert session.role == "user"
    assert store.get("isFirstLaunch") == "false"

    store.set("demandeAjoutLogementId", "d1")
    auth.clear()
    assert auth.load() is None
    assert auth.token() is None
    assert store.get("demandeAjoutLogementId") == "d1"


def test_login_result_requires_data_object() -> None:
    with pytest.raises(ValueError):
        LoginResult.from_response({"token": "jwt"})


@responses.activate
def test_session_login_stores_token_and_passes_it_to_clients(config: ClientConfig, store: KeyValueStore) -> None:
    def callback(request):
        assert json.loads(request.body) == {"email": "marie@example.com", "password": "secret"}
        return (200, {}, json.dumps(_login_payload()))

    responses.add_callback(responses.POST, "https://api.example.com/auth/login", callback=callback)
    session = ApiSession(config=config, store=store)
    assert session.is_authenticated() is False

    session.login("marie@example.com", "secret")

    assert session.is_authenticated() is True
    assert store.get("userToken") == "jwt-1"
    assert session.logements_client().access_token == "jwt-1"
    assert session.housing_requests_client().access_token == "jwt-1"


def test_session_reads_token_once_from_store(config: ClientConfig, store: KeyValueStore) -> None:
    store.set("userToken", "stored-token")
    session = ApiSession(config=config, store=store)
    assert session.token == "stored-token"

    session.logout()

    assert session.token is None
    assert store.get("userToken") is None
    assert session.donations_client().access_token is None


def test_session_builds_its_own_store_from_config(config: ClientConfig) -> None:
    session = ApiSession(config=config)
    session.store.set("donId", "1")
    assert str(session.store.path) == config.storage_path
