from typing import Any
from unittest.mock import MagicMock

import pytest
import requests

from config import SALESFORCE_SANDBOX_URL
from exceptions import (
    APIRequestError,
    AuthenticationError,
    InvalidConfigurationError,
    ObjectNotFoundError,
)
from services.salesforce_service import SalesforceService
from tests.conftest import make_describe


def _response(status: int, payload: Any = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.json.return_value = payload
    response.text = ""
    return response


@pytest.fixture
def token_settings(clean_env):
    return clean_env(SF_ACCESS_TOKEN="00Dxx!token", SF_INSTANCE_URL="https://acme.my.salesforce.com/")


@pytest.fixture
def connected(token_settings) -> SalesforceService:
    service = SalesforceService(token_settings)
    service.session = MagicMock()
    service.connect()
    return service


def test_connect_with_access_token(token_settings) -> None:
    service = SalesforceService(token_settings)
    service.session = MagicMock()

    assert service.connect() == ("00Dxx!token", "https://acme.my.salesforce.com")
    service.session.post.assert_not_called()


def test_connect_without_credentials(clean_env) -> None:
    with pytest.raises(InvalidConfigurationError, match="SF_ACCESS_TOKEN"):
        SalesforceService(clean_env()).connect()


def test_connect_with_password_flow(clean_env) -> None:
    settings = clean_env(
        SF_USERNAME="admin@acme.com",
        SF_PASSWORD="secret",
        SF_SECURITY_TOKEN="TOKEN",
        SF_CLIENT_ID="client",
        SF_CLIENT_SECRET="shh",
        SF_LOGIN_URL=SALESFORCE_SANDBOX_URL,
    )
    service = SalesforceService(settings)
    service.session = MagicMock()
    service.session.post.return_value = _response(200, {
        "access_token": "abc", "instance_url": "https://acme--dev.my.salesforce.com"
    })

    assert service.connect() == ("abc", "https://acme--dev.my.salesforce.com")

    url = service.session.post.call_args.args[0]
    payload = service.session.post.call_args.kwargs["data"]
    assert url == "https://test.salesforce.com/services/oauth2/token"
    assert payload["grant_type"] == "password"
    assert payload["password"] == "secretTOKEN"


def test_invalid_grant_raises_authentication_error(clean_env) -> None:
    service = SalesforceService(clean_env())
    service.session = MagicMock()
    service.session.post.return_value = _response(400, {
        "error": "invalid_grant", "error_description": "authentication failure"
    })

    with pytest.raises(AuthenticationError, match="Invalid username or password"):
        service.get_access_token({
            "client_id": "c", "client_secret": "s", "username": "u", "password": "p"
        })


def test_network_error_during_login(clean_env) -> None:
    service = SalesforceService(clean_env())
    service.session = MagicMock()
    service.session.post.side_effect = requests.exceptions.ConnectionError("no route")

    with pytest.raises(AuthenticationError, match="Network error"):
        service.get_access_token({"client_id": "c", "client_secret": "s", "username": "u", "password": "p"})


def test_requests_before_connect_fail(token_settings) -> None:
    with pytest.raises(APIRequestError, match="Not connected"):
        SalesforceService(token_settings).describe_global()


def test_describe_global(connected) -> None:
    connected.session.get.return_value = _response(200, {"sobjects": [
        {"name": "Account", "label": "Account", "custom": False},
        {"name": "Invoice__c", "label": "Invoice", "custom": True},
        {"label": "Nameless"},
    ]})

    assert connected.describe_global() == [
        {"name": "Account", "label": "Account", "custom": False},
        {"name": "Invoice__c", "label": "Invoice", "custom": True},
    ]
    url = connected.session.get.call_args.args[0]
    assert url == "https://acme.my.salesforce.com/services/data/v60.0/sobjects/"
    headers = connected.session.get.call_args.kwargs["headers"]
    assert headers["Authorization"] == "Bearer 00Dxx!token"


def test_describe_object_attaches_theme_info(connected) -> None:
    def get(url, **kwargs):
        if url.endswith("/describe"):
            return _response(200, make_describe("Account"))
        return _response(200, {"themeInfo": {"color": "7F8DE1", "iconUrl": "https://x/img/icon/t4v35/standard/account_120.png"}})

    connected.session.get.side_effect = get

    describe = connected.describe_object("Account")

    assert describe["name"] == "Account"
    assert describe["themeInfo"]["color"] == "7F8DE1"


def test_missing_theme_info_is_not_fatal(connected) -> None:
    def get(url, **kwargs):
        if url.endswith("/describe"):
            return _response(200, make_describe("Account"))
        return _response(500, [{"message": "UI API unavailable", "errorCode": "UNKNOWN"}])

    connected.session.get.side_effect = get

    assert "themeInfo" not in connected.describe_object("Account")


def test_describe_object_errors(connected) -> None:
    connected.session.get.return_value = _response(404, [{"message": "The requested resource does not exist"}])
    with pytest.raises(ObjectNotFoundError):
        connected.describe_object("Bogus", include_icons=False)

    connected.session.get.return_value = _response(401, [{"message": "Session expired or invalid"}])
    with pytest.raises(AuthenticationError, match="Session expired"):
        connected.describe_object("Account", include_icons=False)

    connected.session.get.return_value = _response(400, [{"message": "INVALID_TYPE"}])
    with pytest.raises(APIRequestError, match="INVALID_TYPE"):
        connected.describe_object("Account", include_icons=False)


def test_describe_objects_keeps_input_order(connected, monkeypatch) -> None:
    def describe(name, include_icons=True):
        if name == "Bogus":
            raise ObjectNotFoundError("Not found")
        return make_describe(name)

    monkeypatch.setattr(connected, "describe_object", describe)

    results = connected.describe_objects(["Contact", "Bogus", "Account"], max_workers=2)

    assert [name for name, _, _ in results] == ["Contact", "Bogus", "Account"]
    assert results[0][1]["name"] == "Contact"
    assert isinstance(results[1][2], ObjectNotFoundError)
    assert results[2][2] is None


def test_describe_objects_propagates_authentication_errors(connected, monkeypatch) -> None:
    def describe(name, include_icons=True):
        raise AuthenticationError("expired")

    monkeypatch.setattr(connected, "describe_object", describe)

    with pytest.raises(AuthenticationError):
        connected.describe_objects(["Account"])


def test_disconnect_forgets_session(connected) -> None:
    connected.disconnect()
    assert connected.access_token is None
    connected.session.close.assert_called_once()
