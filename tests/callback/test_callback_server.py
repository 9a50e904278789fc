from unittest.mock import AsyncMock
from urllib.parse import urlparse

import httpx
import pytest
from starlette.testclient import TestClient

from keyhub.auth.client.oauth_client import OAuthKeyClient
from keyhub.auth.client.services.storage import InMemoryTokenStore
from keyhub.callback.server import SUCCESS_MESSAGE, CallbackServer, build_callback_app
from keyhub.config import OAuthSettings

OAUTH_SERVER = "https://open.cherryin.ai"


@pytest.fixture
def http_client():
    return AsyncMock()


@pytest.fixture
def oauth_client(http_client):
    return OAuthKeyClient(
        InMemoryTokenStore(),
        settings=OAuthSettings(redirect_uri="http://127.0.0.1:8765/callback"),
        http_client=http_client,
    )


@pytest.fixture
def on_result():
    return AsyncMock()


@pytest.fixture
def test_client(oauth_client, on_result):
    return TestClient(build_callback_app(oauth_client, on_result=on_result))


class TestCallbackApp:
    def test_successful_callback(self, test_client, oauth_client, http_client, on_result):
        # Arrange
        flow = oauth_client.flow_manager.start_authorization_flow(OAUTH_SERVER)
        http_client.post.return_value = httpx.Response(
            200, json={"access_token": "A", "refresh_token": "R"}
        )
        http_client.get.return_value = httpx.Response(200, json=["secret-key"])

        # Act
        response = test_client.get(
            "/callback", params={"code": "auth-code", "state": flow.state}
        )

        # Assert
        assert response.status_code == 200
        assert SUCCESS_MESSAGE in response.text
        assert "secret-key" not in response.text
        on_result.assert_awaited_once()
        assert on_result.await_args[0][0].api_keys == "secret-key"

    def test_provider_error_is_shown(self, test_client, http_client, on_result):
        # Act
        response = test_client.get(
            "/callback",
            params={"error": "access_denied", "error_description": "User <b>denied</b>"},
        )

        # Assert
        assert response.status_code == 400
        assert "Authorization failed: access_denied - User &lt;b&gt;denied&lt;/b&gt;" in response.text
        http_client.post.assert_not_called()
        on_result.assert_not_called()

    @pytest.mark.parametrize(
        "params", [{}, {"code": "auth-code"}, {"state": "some-state"}]
    )
    def test_missing_parameters(self, test_client, http_client, params):
        # Act
        response = test_client.get("/callback", params=params)

        # Assert
        assert response.status_code == 400
        assert "missing code or state" in response.text
        http_client.post.assert_not_called()

    def test_unknown_state_is_rejected(self, test_client, http_client, on_result):
        # Act
        response = test_client.get(
            "/callback", params={"code": "auth-code", "state": "forged"}
        )

        # Assert
        assert response.status_code == 400
        assert "OAuth flow expired or not found" in response.text
        http_client.post.assert_not_called()
        on_result.assert_not_called()

    def test_only_get_is_routed(self, test_client):
        assert test_client.post("/callback").status_code == 405


class TestCallbackServer:
    def test_redirect_uri(self, oauth_client):
        server = CallbackServer(oauth_client, port=9000, path="/cb")

        assert server.redirect_uri == "http://127.0.0.1:9000/cb"

    def test_app_serves_redirect_path(self, oauth_client):
        # Arrange
        server = CallbackServer(oauth_client, path="/oauth/done")
        test_client = TestClient(server.app)

        # Act
        response = test_client.get(urlparse(server.redirect_uri).path)

        # Assert - reaches the handler, which rejects the empty query
        assert response.status_code == 400
        assert "missing code or state" in response.text
        assert test_client.get("/callback").status_code == 404

    async def test_stop_without_start_is_noop(self, oauth_client):
        server = CallbackServer(oauth_client)

        await server.stop()
