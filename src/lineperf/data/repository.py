from __future__ import annotations

from lineperf.core.models import AuditEntry
from lineperf.data.audit import AuditLog
from lineperf.data.backup import BackupCoordinator
from lineperf.data.catalog import CatalogRepository
from lineperf.data.db import Db
from lineperf.data.performance_repository import PerformanceRepository


class Repository:
    """Single handle over one database: catalog, records, backups and audit log."""

    def __init__(self, db: Db):
        self.db = db
        self.audit = AuditLog(db)
        self.catalog = CatalogRepository(db)
        self.records = PerformanceRepository(db, audit=self.audit)
        self.backup = BackupCoordinator(db, audit=self.audit)

    def log_audit(self, category: str, message: str, details: str | None = None) -> None:
        self.audit.log_audit(category, message, details)

    def get_recent_audit_entries(self, limit: int = 100) -> list[AuditEntry]:
        return self.audit.get_recent_audit_entries(limit)
