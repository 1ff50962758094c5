"""
Adapter for Zhipu GLM.

GLM does not accept its long-lived key directly.  The key has the form ``<id>.<secret>`` and every
request carries a short-lived HS256 token signed with the secret.  Tokens are minted per attempt
and never cached.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Dict

from nexus.core.schema import ProviderId
from nexus.providers.base import (
    ProviderAuthError,
    register_provider,
)
from nexus.providers.chat_completions import ChatCompletionsProvider

TOKEN_TTL_SECONDS = 3600


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_glm_token(api_key: str, now_ms: int | None = None) -> str:
    """
    Sign a GLM access token from an ``<id>.<secret>`` key.

    Parameters
    ----------
    api_key:
        The long-lived key as issued by the GLM console.
    now_ms:
        Current time in milliseconds; defaults to the wall clock.

    Raises
    ------
    ProviderAuthError
        If the key is not in ``<id>.<secret>`` form.
    """
    key_id, _, secret = api_key.partition(".")
    if not key_id or not secret:
        raise ProviderAuthError("Invalid GLM API key format (expected <id>.<secret>)")

    now = int(time.time() * 1000) if now_ms is None else now_ms
    header = {"alg": "HS256", "sign_type": "SIGN"}
    payload = {"api_key": key_id, "exp": now + TOKEN_TTL_SECONDS * 1000, "timestamp": now}

    signing_input = ".".join(
        _b64url(json.dumps(part, separators=(",", ":")).encode("utf-8"))
        for part in (header, payload)
    )
    signature = hmac.new(
        secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256
    ).digest()
    return f"{signing_input}.{_b64url(signature)}"


@register_provider(ProviderId.GLM)
class GlmProvider(ChatCompletionsProvider):
    """GLM chat completions authenticated with a freshly signed token."""

    def _headers(self) -> Dict[str, str]:
        token = generate_glm_token(self.config.api_key or "")
        return {"Content-Type": "application/json", "Authorization": f"Bearer {token}"}
