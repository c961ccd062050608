"""Webhook signature verification for the Pyrus task webhook.

Pyrus signs the exact request body with HMAC-SHA1 keyed by the bot secret and
sends the lowercase hex digest in the ``X-Pyrus-Sig`` header.
"""

from __future__ import annotations

import hashlib
import hmac


class SignatureVerifier:
    """Constant-time HMAC check over raw request bytes."""

    def __init__(self, secret: str, digest: str = "sha1") -> None:
        self._secret = secret.encode()
        # Fails here, not per request, on an unknown digest name
        hashlib.new(digest)
        self._digest = digest

    def sign(self, body: bytes) -> str:
        return hmac.new(self._secret, body, self._digest).hexdigest()

    def verify(self, body: bytes, signature_header: str | None) -> bool:
        """Return True only if the header carries the digest of ``body``.

        A missing, empty or malformed header is always invalid.
        """
        if not self._secret or not signature_header:
            return False
        signature = signature_header.strip().lower()
        if not signature:
            return False
        try:
            provided = signature.encode("ascii")
        except UnicodeEncodeError:
            return False
        return hmac.compare_digest(self.sign(body).encode("ascii"), provided)
