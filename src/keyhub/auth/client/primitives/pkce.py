"""PKCE (Proof Key for Code Exchange) generator.

Implements RFC 7636 parameter generation to prevent authorization code
interception attacks, plus the CSRF state token drawn from the same
generator.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string
from typing import Protocol, Sequence

from keyhub.auth.client.models.errors import PKCEError
from keyhub.auth.client.models.security import PKCEParameters

# RFC 7636 Section 4.1 unreserved characters
UNRESERVED_CHARACTERS = string.ascii_letters + string.digits + "-._~"

VERIFIER_LENGTH = 64
STATE_LENGTH = 32


class RandomSource(Protocol):
    """Anything that can pick an element uniformly from a sequence.

    ``secrets.SystemRandom()`` in production, a seeded ``random.Random`` in
    tests.
    """

    def choice(self, seq: Sequence[str]) -> str: ...


class PKCEManager:
    """Generates PKCE parameters and state tokens for authorization flows.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method (SHA256 + base64url)
    - Draws verifiers uniformly from the unreserved character set
    - Draws the state independently so it never equals the verifier
    """

    def __init__(self, rng: RandomSource | None = None):
        """Initialize the PKCE manager.

        Args:
            rng: Random source; defaults to the OS CSPRNG
        """
        self._rng = rng if rng is not None else secrets.SystemRandom()

    def generate_parameters(self) -> PKCEParameters:
        """Generate new PKCE parameters for an authorization flow.

        Returns:
            PKCEParameters: Immutable parameters for the authorization flow

        Raises:
            PKCEError: If parameter generation fails
        """
        code_verifier = self.generate_verifier()
        code_challenge = self.derive_challenge(code_verifier)
        state = self.generate_state()

        try:
            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=code_challenge,
                state=state,
            )
        except ValueError as e:
            raise PKCEError(f"Failed to generate PKCE parameters: {e}") from e

    def generate_verifier(self, length: int = VERIFIER_LENGTH) -> str:
        """Generate a code verifier.

        RFC 7636 Section 4.1: code verifier must be 43-128 characters long
        and use only unreserved characters:
            [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"

        Raises:
            PKCEError: If length is outside 43-128
        """
        if not (43 <= length <= 128):
            raise PKCEError(f"code_verifier length must be 43-128, got {length}")
        return self._random_string(length)

    def generate_state(self, length: int = STATE_LENGTH) -> str:
        """Generate an unguessable state parameter for CSRF protection."""
        return self._random_string(length)

    @staticmethod
    def derive_challenge(code_verifier: str) -> str:
        """Derive the S256 code challenge for a verifier.

        RFC 7636 Section 4.2: For S256, the code challenge is:
        BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))

        Returns:
            Base64url-encoded SHA256 hash of the verifier, without padding
        """
        digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")

    def _random_string(self, length: int) -> str:
        return "".join(self._rng.choice(UNRESERVED_CHARACTERS) for _ in range(length))
