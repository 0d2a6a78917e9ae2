from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from supabase import Client, create_client

from .config import settings

logger = logging.getLogger(__name__)

USAGE_FIELDS = {
    "occurred_at",
    "user_id",
    "user_email",
    "file_name",
    "file_size_bytes",
    "rows_processed",
    "campaigns",
    "status",
    "duration_ms",
    "app_version",
    "tool",
    "meta",
}

ERROR_FIELDS = {
    "occurred_at",
    "tool",
    "severity",
    "message",
    "route",
    "method",
    "status_code",
    "user_id",
    "user_email",
    "meta",
}


class EventLogger:
    """
    Best-effort Supabase insert of one event row per call.

    Keys outside the table's columns are folded into the JSONB `meta` column.
    Disabled unless ENABLE_USAGE_LOGGING=1; failures are logged, never raised.
    """

    def __init__(self, table: str, columns: Iterable[str]) -> None:
        self.table = table
        self.columns = set(columns)
        self._client: Optional[Client] = None

    def _get_client(self) -> Optional[Client]:
        if not settings.usage_logging_enabled:
            return None
        if not settings.supabase_url or not settings.supabase_service_role:
            logger.warning("Event logging enabled but Supabase service role credentials missing.")
            return None
        if not self._client:
            self._client = create_client(settings.supabase_url, settings.supabase_service_role)
        return self._client

    def build_row(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        row = {k: v for k, v in payload.items() if k in self.columns and v is not None}
        extra = {k: v for k, v in payload.items() if k not in self.columns and v is not None}
        if extra:
            meta = row.get("meta") if isinstance(row.get("meta"), dict) else {}
            row["meta"] = {**meta, **extra}
        return row

    def log(self, payload: Dict[str, Any]) -> None:
        client = self._get_client()
        if not client:
            return
        try:
            client.table(self.table).insert(self.build_row(payload)).execute()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to record %s event: %s", self.table, exc)


usage_logger = EventLogger("usage_events", USAGE_FIELDS)
error_logger = EventLogger("app_error_events", ERROR_FIELDS)
