"""EventSource configuration via environment variables (STREAMSOURCE_ prefix) or defaults."""

from __future__ import annotations

from pydantic_settings import BaseSettings

# Stored keys must keep this prefix, otherwise existing subscriptions
# restart from the beginning of the server's history.
DEFAULT_LAST_EVENT_ID_NAMESPACE = "com.inaka.eventSource.lastEventId"


class EventSourceConfig(BaseSettings):
    retry_interval_ms: int = 3000
    connect_timeout_seconds: float = 30.0
    last_event_id_namespace: str = DEFAULT_LAST_EVENT_ID_NAMESPACE
    reconnect_on_http_error: bool = False
    store_path: str = "data/streamsource.sqlite"
    log_dir: str = "logs"
    log_level: str = "INFO"

    model_config = {"env_prefix": "STREAMSOURCE_"}
