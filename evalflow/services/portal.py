"""Interviewer portal deep links."""

from urllib.parse import urlencode, urlsplit, urlunsplit, parse_qsl

from evalflow.middleware.error_handler import InvalidPortalUrlError


def read_portal_base_url(raw: str) -> str:
    """Validate the configured portal URL.

    Raises:
        InvalidPortalUrlError: Missing, relative or non-http(s) URL
    """
    value = (raw or "").strip()
    if not value:
        raise InvalidPortalUrlError("missing")

    try:
        parts = urlsplit(value)
        hostname = parts.hostname
    except ValueError as e:
        raise InvalidPortalUrlError("malformed") from e

    if parts.scheme not in ("http", "https") or not hostname:
        raise InvalidPortalUrlError("not an absolute http(s) URL")
    return value


def build_portal_link(base_url: str, evaluation_id: str, slot_id: str) -> str:
    """Add evaluation and slot query parameters to the portal URL."""
    parts = urlsplit(base_url)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in ("evaluation", "slot")
    ]
    query.extend([("evaluation", evaluation_id), ("slot", slot_id)])
    return urlunsplit(parts._replace(query=urlencode(query)))
