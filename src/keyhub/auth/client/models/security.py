"""Security-related models for the authorization code flow.

Contains the PKCE parameters and CSRF state generated for each flow.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters for one authorization flow.

    Immutable parameters generated per flow to prevent authorization code
    interception (RFC 7636). ``state`` is the CSRF token echoed back through
    the redirect; it is a separate random draw from the verifier.
    """

    code_verifier: str = field()
    code_challenge: str = field()
    state: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")
        if self.state == self.code_verifier:
            raise ValueError("state must not reuse the code_verifier")
