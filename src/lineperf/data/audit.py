from __future__ import annotations

import logging

from lineperf.core.models import AuditEntry
from lineperf.data.db import Db

logger = logging.getLogger(__name__)


class AuditLog:
    """Business event journal stored next to the data it describes."""

    def __init__(self, db: Db):
        self.db = db

    def log_audit(self, category: str, message: str, details: str | None = None) -> None:
        """Record a business event in the audit log."""
        try:
            with self.db.connect() as con:
                con.execute(
                    "INSERT INTO audit_log (category, message, details) VALUES (?, ?, ?)",
                    (category, message, details),
                )
        except Exception:
            # The business write already committed; an audit failure must not undo it.
            logger.exception("Failed to write audit log")

    def get_recent_audit_entries(self, limit: int = 100) -> list[AuditEntry]:
        with self.db.connect() as con:
            rows = con.execute(
                "SELECT * FROM audit_log ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
            return [
                AuditEntry(
                    id=row["id"],
                    timestamp=row["timestamp"],
                    category=row["category"],
                    message=row["message"],
                    details=row["details"],
                )
                for row in rows
            ]
