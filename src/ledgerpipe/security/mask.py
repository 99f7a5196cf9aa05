# SPDX-License-Identifier: Apache-2.0
"""Masking helpers for credentials embedded in RPC endpoints."""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# Query parameters commonly used by hosted RPC providers to carry API keys
_SECRET_PARAMS = {"apikey", "api_key", "api-key", "key", "token", "access_token", "auth"}


def mask(value: Optional[str], show: int = 4) -> str:
    """Mask a secret string, showing only the last ``show`` characters.

    Examples:
        >>> mask("ABCD1234EFGH")
        '********EFGH'
        >>> mask("short")
        '***'
    """
    if not value or len(value) <= show + 2:
        return "***"
    if show == 0:
        return "*" * len(value)
    return "*" * (len(value) - show) + value[-show:]


def url_secrets(url: str) -> list[str]:
    """Return the credential-looking fragments of ``url``.

    Covers the password of the userinfo part and the values of API-key style
    query parameters.
    """
    parts = urlsplit(url)
    secrets: list[str] = []
    if parts.password:
        secrets.append(parts.password)
    for name, value in parse_qsl(parts.query, keep_blank_values=False):
        if name.lower() in _SECRET_PARAMS and value:
            secrets.append(value)
    return secrets


def mask_url(url: str) -> str:
    """Return ``url`` with its credentials masked, suitable for logging."""
    parts = urlsplit(url)
    netloc = parts.netloc
    if parts.password:
        netloc = netloc.replace(f":{parts.password}@", f":{mask(parts.password)}@")
    query = parts.query
    if query:
        pairs = [
            (name, mask(value) if name.lower() in _SECRET_PARAMS else value)
            for name, value in parse_qsl(query, keep_blank_values=True)
        ]
        query = urlencode(pairs, safe="*")
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def safe_for_log(msg: str, *secrets: str) -> str:
    """Replace any secrets in a log message with masked versions.

    Examples:
        >>> safe_for_log("API key is ABCD1234EFGH", "ABCD1234EFGH")
        'API key is ********EFGH'
    """
    for secret in secrets:
        if secret:
            msg = msg.replace(secret, mask(secret))
    return msg


__all__ = ["mask", "mask_url", "safe_for_log", "url_secrets"]
