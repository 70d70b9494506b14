"""
identity/session.py -- Session issuer.

Mints a short-lived signed custom token for a uid that the orchestrator has
just confirmed exists at the identity provider. The client exchanges it with
the identity provider for a full session. No password or secret material goes
into the token.

Minting failures are fatal to login. There is no fallback to an unsigned or
locally trusted token.
"""

from __future__ import annotations

import logging

from core.errors import SessionIssueFailed
from identity.provider import IdentityProvider, IdentityProviderError

logger = logging.getLogger("scholarship.identity")


class SessionIssuer:
    def __init__(self, provider: IdentityProvider) -> None:
        self._provider = provider

    def issue(self, uid: str, role: str) -> str:
        """Return a custom token bound to uid carrying the role claim."""
        try:
            token = self._provider.create_custom_token(uid, {"role": role})
        except IdentityProviderError as exc:
            logger.error("Custom token minting failed for %s: %s", uid, exc)
            raise SessionIssueFailed() from exc
        if not token:
            logger.error("Identity provider returned an empty custom token for %s", uid)
            raise SessionIssueFailed()
        return token
