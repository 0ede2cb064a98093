"""
Sender authentication for the HTTP boundary.

Each identity proves itself with a token issued by the operator:

    token = HMAC-SHA256(sender_auth_secret, identity)

The API recomputes the token for the claimed ``X-Sender`` and compares it in
constant time. Operators issue tokens with ``unity-vault token <identity>``.
"""

from __future__ import annotations

import hashlib
import hmac

from unity_vault.config import settings


def sender_token(sender: str, secret: str | None = None) -> str:
    key = (secret if secret is not None else settings.sender_auth_secret).encode()
    return hmac.new(key, sender.encode(), hashlib.sha256).hexdigest()


def verify_sender(sender: str, token: str, secret: str | None = None) -> bool:
    """True if ``token`` was issued for ``sender``."""
    return hmac.compare_digest(sender_token(sender, secret).encode(), token.encode())
