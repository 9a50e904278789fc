"""Authorization flow orchestration service.

Coordinates the front half of the authorization code flow: host checks,
PKCE and state generation, pending-flow bookkeeping and authorization URL
construction. The back half (code exchange) consumes the flow recorded here.
"""

from __future__ import annotations

import logging

from keyhub.auth.client.models.errors import FlowExpiredError
from keyhub.auth.client.models.flow import AuthorizationRequest, FlowStart, PendingFlow
from keyhub.auth.client.primitives.hosts import HostValidator
from keyhub.auth.client.primitives.pkce import PKCEManager
from keyhub.auth.client.services.registry import FlowRegistry
from keyhub.config import OAuthSettings

logger = logging.getLogger(__name__)


class OAuth2FlowManager:
    """Starts authorization flows and hands them back exactly once.

    Handles:
    - Allow-list checks on the OAuth server and API host
    - PKCE parameter and state generation
    - Pending flow registration (keyed by state for CSRF protection)
    - Authorization URL construction
    """

    def __init__(
        self,
        settings: OAuthSettings,
        registry: FlowRegistry | None = None,
        pkce_manager: PKCEManager | None = None,
        host_validator: HostValidator | None = None,
    ):
        self.settings = settings
        self.registry = (
            registry
            if registry is not None
            else FlowRegistry(ttl_seconds=settings.flow_ttl_seconds)
        )
        self._pkce_manager = pkce_manager if pkce_manager is not None else PKCEManager()
        self.host_validator = (
            host_validator
            if host_validator is not None
            else HostValidator(settings.allowed_hosts)
        )

    def start_authorization_flow(
        self, oauth_server: str, api_host: str | None = None
    ) -> FlowStart:
        """Start an authorization flow.

        Args:
            oauth_server: Authorization server origin, e.g. https://open.example.ai
            api_host: API origin used after the exchange; defaults to oauth_server

        Returns:
            FlowStart with the URL for the user to visit and the state to
            correlate the callback

        Raises:
            UnauthorizedHostError: If either host is not allow-listed
        """
        self.host_validator.validate(oauth_server)
        if api_host:
            self.host_validator.validate(api_host)
        resolved_api_host = api_host or oauth_server

        pkce_params = self._pkce_manager.generate_parameters()

        self.registry.begin(
            PendingFlow(
                state=pkce_params.state,
                code_verifier=pkce_params.code_verifier,
                oauth_server=oauth_server,
                api_host=resolved_api_host,
                created_at=self.registry.now(),
            )
        )

        auth_request = AuthorizationRequest(
            client_id=self.settings.client_id,
            redirect_uri=self.settings.redirect_uri,
            scope=self.settings.scopes,
            state=pkce_params.state,
            code_challenge=pkce_params.code_challenge,
            code_challenge_method=pkce_params.code_challenge_method,
        )
        auth_url = auth_request.build_authorization_url(oauth_server)

        logger.info(f"Started authorization flow on {oauth_server}")
        return FlowStart(auth_url=auth_url, state=pkce_params.state)

    def consume_flow(self, state: str) -> PendingFlow:
        """Take the pending flow for ``state`` out of the registry.

        Raises:
            FlowExpiredError: If the state is unknown, expired, or already used
        """
        flow = self.registry.take_and_remove(state)
        if flow is None:
            logger.warning("Authorization callback with unknown or expired state")
            raise FlowExpiredError()
        return flow
