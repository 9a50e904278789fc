"""Tests for authorization flow start and consumption.

High-impact tests covering the front half of the flow:
- Authorization URL generation with proper parameters
- Host allow-list enforcement before anything is registered
- Single-use consumption of pending flows
- Expiry of abandoned flows
"""

import random
from urllib.parse import parse_qs, urlparse

import pytest

from keyhub.auth.client.models.errors import FlowExpiredError, UnauthorizedHostError
from keyhub.auth.client.primitives.hosts import HostValidator
from keyhub.auth.client.primitives.pkce import PKCEManager
from keyhub.auth.client.services.flow import OAuth2FlowManager
from keyhub.auth.client.services.registry import FlowRegistry
from keyhub.config import OAuthSettings

OAUTH_SERVER = "https://open.cherryin.ai"
API_HOST = "https://open.cherryin.net"


class TestStartAuthorizationFlow:
    """Test flow initiation and URL generation."""

    @pytest.fixture
    def flow_manager(self, settings, clock):
        return OAuth2FlowManager(
            settings, registry=FlowRegistry(clock=clock), pkce_manager=PKCEManager()
        )

    def test_generates_authorization_url(self, flow_manager, settings):
        # Act
        flow_start = flow_manager.start_authorization_flow(OAUTH_SERVER)

        # Assert - Parse the generated URL
        parsed = urlparse(flow_start.auth_url)
        query_params = parse_qs(parsed.query)

        assert parsed.scheme == "https"
        assert parsed.netloc == "open.cherryin.ai"
        assert parsed.path == "/oauth2/auth"

        assert query_params["client_id"] == [settings.client_id]
        assert query_params["redirect_uri"] == [settings.redirect_uri]
        assert query_params["response_type"] == ["code"]
        assert query_params["scope"] == [settings.scopes]
        assert query_params["state"] == [flow_start.state]
        assert query_params["code_challenge_method"] == ["S256"]
        assert len(query_params["code_challenge"][0]) == 43

    def test_url_values_are_encoded(self, flow_manager):
        # Act
        flow_start = flow_manager.start_authorization_flow(OAUTH_SERVER)

        # Assert - spaces in scope and the redirect URI are escaped
        query = urlparse(flow_start.auth_url).query
        assert "redirect_uri=app%3A%2F%2Foauth%2Fcallback" in query
        assert "scope=openid+tokens%3Aread" in query

    def test_challenge_matches_stored_verifier(self, flow_manager):
        # Act
        flow_start = flow_manager.start_authorization_flow(OAUTH_SERVER)

        # Assert
        challenge = parse_qs(urlparse(flow_start.auth_url).query)["code_challenge"][0]
        flow = flow_manager.consume_flow(flow_start.state)
        assert PKCEManager.derive_challenge(flow.code_verifier) == challenge
        assert flow.code_verifier != flow_start.state

    def test_api_host_defaults_to_oauth_server(self, flow_manager):
        # Act
        flow_start = flow_manager.start_authorization_flow(OAUTH_SERVER)

        # Assert
        flow = flow_manager.consume_flow(flow_start.state)
        assert flow.oauth_server == OAUTH_SERVER
        assert flow.api_host == OAUTH_SERVER

    def test_distinct_api_host_is_recorded(self, flow_manager):
        # Act
        flow_start = flow_manager.start_authorization_flow(OAUTH_SERVER, API_HOST)

        # Assert
        assert flow_manager.consume_flow(flow_start.state).api_host == API_HOST

    def test_seeded_rng_gives_reproducible_urls(self, settings, clock):
        # Arrange
        managers = [
            OAuth2FlowManager(
                settings,
                registry=FlowRegistry(clock=clock),
                pkce_manager=PKCEManager(rng=random.Random(7)),
            )
            for _ in range(2)
        ]

        # Act
        urls = [m.start_authorization_flow(OAUTH_SERVER).auth_url for m in managers]

        # Assert
        assert urls[0] == urls[1]


class TestCollaborators:
    def test_injected_empty_registry_is_kept(self, settings, clock):
        # Arrange
        registry = FlowRegistry(clock=clock)

        # Act
        flow_manager = OAuth2FlowManager(settings, registry=registry)

        # Assert
        assert flow_manager.registry is registry

    def test_injected_host_validator_is_kept(self, settings):
        # Arrange
        validator = HostValidator(["https://login.example.com"])

        # Act
        flow_manager = OAuth2FlowManager(settings, host_validator=validator)

        # Assert
        assert flow_manager.host_validator is validator
        flow_manager.start_authorization_flow("https://login.example.com")
        with pytest.raises(UnauthorizedHostError):
            flow_manager.start_authorization_flow(OAUTH_SERVER)

    def test_default_registry_uses_configured_ttl(self):
        # Arrange
        settings = OAuthSettings(flow_ttl_seconds=30)

        # Act & Assert
        assert OAuth2FlowManager(settings).registry.ttl_seconds == 30


class TestHostValidation:
    def test_unauthorized_oauth_server_registers_nothing(self, settings):
        # Arrange
        flow_manager = OAuth2FlowManager(settings)

        # Act & Assert
        with pytest.raises(UnauthorizedHostError):
            flow_manager.start_authorization_flow("https://evil.example.com")
        assert len(flow_manager.registry) == 0

    def test_unauthorized_api_host_registers_nothing(self, settings):
        # Arrange
        flow_manager = OAuth2FlowManager(settings)

        # Act & Assert
        with pytest.raises(UnauthorizedHostError):
            flow_manager.start_authorization_flow(OAUTH_SERVER, "http://169.254.169.254")
        assert len(flow_manager.registry) == 0


class TestConsumeFlow:
    def test_second_consume_raises_flow_expired(self, settings):
        # Arrange
        flow_manager = OAuth2FlowManager(settings)
        flow_start = flow_manager.start_authorization_flow(OAUTH_SERVER)
        flow_manager.consume_flow(flow_start.state)

        # Act & Assert
        with pytest.raises(FlowExpiredError):
            flow_manager.consume_flow(flow_start.state)

    def test_unknown_state_raises_flow_expired(self, settings):
        # Arrange
        flow_manager = OAuth2FlowManager(settings)

        # Act & Assert
        with pytest.raises(FlowExpiredError, match="expired or not found"):
            flow_manager.consume_flow("never-issued")

    def test_flow_older_than_ten_minutes_is_not_found(self, settings, clock):
        # Arrange
        flow_manager = OAuth2FlowManager(settings, registry=FlowRegistry(clock=clock))
        flow_start = flow_manager.start_authorization_flow(OAUTH_SERVER)

        # Act
        clock.advance(10 * 60 + 1)

        # Assert
        with pytest.raises(FlowExpiredError):
            flow_manager.consume_flow(flow_start.state)
