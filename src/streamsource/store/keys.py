"""Storage key for a subscription's last event id."""

from __future__ import annotations

from urllib.parse import unquote, urlsplit

from streamsource.config import DEFAULT_LAST_EVENT_ID_NAMESPACE


def last_event_id_key(url: str, namespace: str = DEFAULT_LAST_EVENT_ID_NAMESPACE) -> str:
    """Build ``<namespace>.<scheme>.<host>.<port>.<path>`` for ``url``.

    The shape is fixed: stored ids written by earlier releases are looked up
    with it. A URL without an explicit port contributes an empty port
    segment, the path is percent-decoded and the query string is not part
    of the key.
    """
    parts = urlsplit(url)
    port = str(parts.port) if parts.port is not None else ""
    host = parts.hostname or ""
    return f"{namespace}.{parts.scheme}.{host}.{port}.{unquote(parts.path)}"
