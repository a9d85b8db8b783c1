"""Strip hop-by-hop and forwarding headers before replaying them upstream."""

from __future__ import annotations

from collections.abc import Mapping

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    },
)
REQUEST_SPECIFIC_HEADERS = frozenset({"host", "content-length"})
FORWARDING_HEADERS = frozenset({"forwarded", "via", "x-real-ip"})
_FORWARDING_PREFIX = "x-forwarded-"


def sanitize_headers(headers: Mapping[str, object] | None) -> dict[str, str]:
    """Return a new header dict without headers that must not be forwarded.

    Names listed in an incoming ``Connection`` header are dropped as well.
    The input mapping is never modified.
    """

    if not headers:
        return {}

    connection_tokens: set[str] = set()
    for name, value in headers.items():
        if name.lower() == "connection" and value is not None:
            connection_tokens.update(
                token.strip().lower() for token in str(value).split(",") if token.strip()
            )

    sanitized: dict[str, str] = {}
    for name, value in headers.items():
        if value is None:
            continue
        lowered = name.lower()
        if _is_blocked(lowered) or lowered in connection_tokens:
            continue
        sanitized[name] = str(value)
    return sanitized


def _is_blocked(lowered_name: str) -> bool:
    return (
        lowered_name in HOP_BY_HOP_HEADERS
        or lowered_name in REQUEST_SPECIFIC_HEADERS
        or lowered_name in FORWARDING_HEADERS
        or lowered_name.startswith(_FORWARDING_PREFIX)
    )
