"""Full-data backup and replace-all restore.

The snapshot is a JSON object with one list of flat row objects per table::

    {
        "products": [...],
        "daily_performance": [...],
        "assy_performance": [...],
        "packing_performance": [...]
    }

Row keys are the column names. Original ids are kept on restore, so line
items still point at the same headers and products.

Restore validates the whole document before touching the database, then
deletes and re-inserts every table in one exclusive transaction. It is not
meant to run while other writers are active.
"""

from __future__ import annotations

import json
import logging
import math
import sqlite3
from collections.abc import Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any

from lineperf.data.audit import AuditLog
from lineperf.data.db import Db
from lineperf.data.excel_io import SQLITE_INT_MAX
from lineperf.errors import FormatError, PersistenceError

logger = logging.getLogger(__name__)

# Insert order; deletes run in reverse.
TABLE_ORDER: tuple[str, ...] = ("products", "daily_performance", "assy_performance", "packing_performance")

TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "products": ("id", "product_code", "circuit", "mhr", "qty_sh_pack", "created_at", "updated_at"),
    "daily_performance": (
        "id",
        "date",
        "line_shift",
        "leader",
        "mp",
        "absent",
        "separated_mp",
        "plan",
        "no_ot_mp",
        "ot_mp",
        "ot_hours",
        "assy_wt",
        "qc",
        "total_assy_output",
        "created_at",
        "updated_at",
    ),
    "assy_performance": ("id", "daily_performance_id", "product_id", "assy_output", "created_at"),
    "packing_performance": ("id", "daily_performance_id", "product_id", "packing_output", "created_at"),
}

REQUIRED_COLUMNS: dict[str, tuple[str, ...]] = {
    "products": ("id", "product_code", "circuit", "mhr"),
    "daily_performance": ("id", "date", "line_shift", "leader", "mp", "plan"),
    "assy_performance": ("id", "daily_performance_id", "product_id", "assy_output"),
    "packing_performance": ("id", "daily_performance_id", "product_id", "packing_output"),
}

BACKUP_FILENAME_FORMAT = "performance_backup_%Y-%m-%d_%H-%M-%S.json"

# Value checks per column; any column not listed here is TEXT.
_INT = "int"
_POSITIVE = "positive"
_NON_NEGATIVE = "non_negative"
_DATE = "date"

COLUMN_KINDS: dict[str, dict[str, str]] = {
    "products": {"id": _INT, "circuit": _POSITIVE, "mhr": _POSITIVE, "qty_sh_pack": _INT},
    "daily_performance": {
        "id": _INT,
        "date": _DATE,
        "mp": _INT,
        "absent": _INT,
        "separated_mp": _INT,
        "plan": _INT,
        "no_ot_mp": _INT,
        "ot_mp": _INT,
        "ot_hours": _NON_NEGATIVE,
        "assy_wt": _NON_NEGATIVE,
        "qc": _INT,
        "total_assy_output": _INT,
    },
    "assy_performance": {"id": _INT, "daily_performance_id": _INT, "product_id": _INT, "assy_output": _INT},
    "packing_performance": {"id": _INT, "daily_performance_id": _INT, "product_id": _INT, "packing_output": _INT},
}


def _valid_value(kind: str | None, value: Any) -> bool:
    if kind is None:
        return isinstance(value, str)
    if kind == _INT:
        return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= SQLITE_INT_MAX
    if kind == _DATE:
        if not isinstance(value, str):
            return False
        try:
            date.fromisoformat(value)
        except ValueError:
            return False
        return True
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    if isinstance(value, int) and value > SQLITE_INT_MAX:
        return False
    return value > 0 if kind == _POSITIVE else value >= 0


def _check_row(table: str, pos: int, row: Mapping[str, Any]) -> None:
    kinds = COLUMN_KINDS[table]
    for col in TABLE_COLUMNS[table]:
        value = row.get(col)
        if value is None:
            continue
        if not _valid_value(kinds.get(col), value):
            raise FormatError(f"'{table}' row {pos}: invalid {col} {value!r}")
    if table == "products" and not str(row["product_code"]).strip():
        raise FormatError(f"'{table}' row {pos}: product_code is empty")


def backup_filename(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime(BACKUP_FILENAME_FORMAT)


def dumps(snapshot: Mapping[str, Any]) -> str:
    return json.dumps(snapshot, indent=4, ensure_ascii=False)


def _parse(snapshot: Mapping[str, Any] | str | bytes) -> dict[str, list[dict[str, Any]]]:
    """Validate a snapshot and return its rows per known table.

    Raises FormatError; never touches the database.
    """
    if isinstance(snapshot, (bytes, bytearray)):
        try:
            snapshot = snapshot.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FormatError(f"Backup is not valid UTF-8: {exc}") from exc
    if isinstance(snapshot, str):
        try:
            snapshot = json.loads(snapshot)
        except json.JSONDecodeError as exc:
            raise FormatError(f"Backup is not valid JSON: {exc}") from exc

    if not isinstance(snapshot, Mapping):
        raise FormatError("Backup must be a JSON object")

    unknown = sorted(set(snapshot) - set(TABLE_ORDER))
    if unknown:
        logger.warning("Backup contains unknown collections, ignored: %s", unknown)

    present = [t for t in TABLE_ORDER if t in snapshot]
    if not present:
        raise FormatError(f"Backup contains none of the expected collections: {list(TABLE_ORDER)}")

    out: dict[str, list[dict[str, Any]]] = {t: [] for t in TABLE_ORDER}
    for table in present:
        rows = snapshot[table]
        if rows is None:
            continue
        if not isinstance(rows, list):
            raise FormatError(f"'{table}' must be a list of rows")
        known = set(TABLE_COLUMNS[table])
        extra_keys: set[str] = set()
        for pos, row in enumerate(rows, start=1):
            if not isinstance(row, Mapping):
                raise FormatError(f"'{table}' row {pos} is not an object")
            missing = [c for c in REQUIRED_COLUMNS[table] if row.get(c) is None]
            if missing:
                raise FormatError(f"'{table}' row {pos} is missing {missing}")
            _check_row(table, pos, row)
            extra_keys.update(k for k in row if k not in known)
            # Null optional columns fall back to the column defaults.
            out[table].append({k: row[k] for k in TABLE_COLUMNS[table] if row.get(k) is not None})
        if extra_keys:
            logger.warning("Backup '%s' rows carry unknown columns, ignored: %s", table, sorted(extra_keys))
    return out


class BackupCoordinator:
    def __init__(self, db: Db, audit: AuditLog | None = None):
        self.db = db
        self.audit = audit or AuditLog(db)

    def backup(self) -> dict[str, list[dict[str, Any]]]:
        """Snapshot of every table, rows ordered by id, read in one transaction."""
        snapshot: dict[str, list[dict[str, Any]]] = {}
        with self.db.connect(begin="DEFERRED") as con:
            for table in TABLE_ORDER:
                cols = ", ".join(TABLE_COLUMNS[table])
                rows = con.execute(f"SELECT {cols} FROM {table} ORDER BY id").fetchall()
                snapshot[table] = [dict(r) for r in rows]
        logger.info(
            "Backup taken: %s",
            ", ".join(f"{t}={len(snapshot[t])}" for t in TABLE_ORDER),
        )
        return snapshot

    def write_backup(self, path: Path | str) -> Path:
        """Write a snapshot to ``path``; a directory gets a timestamped file name."""
        target = Path(path)
        if target.is_dir():
            target = target / backup_filename()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(dumps(self.backup()), encoding="utf-8")
        logger.info("Backup written to %s", target)
        self.audit.log_audit("BACKUP", "Backup Written", str(target))
        return target

    def restore(self, snapshot: Mapping[str, Any] | str | bytes) -> dict[str, int]:
        """Replace all stored data with the snapshot. Returns inserted rows per table.

        Collections missing from the snapshot end up empty.
        """
        data = _parse(snapshot)
        counts = {t: 0 for t in TABLE_ORDER}
        try:
            with self.db.connect(begin="EXCLUSIVE") as con:
                for table in reversed(TABLE_ORDER):
                    con.execute(f"DELETE FROM {table}")
                for table in TABLE_ORDER:
                    for row in data[table]:
                        cols = list(row)
                        marks = ", ".join("?" for _ in cols)
                        con.execute(
                            f"INSERT INTO {table}({', '.join(cols)}) VALUES({marks})",
                            [row[c] for c in cols],
                        )
                        counts[table] += 1
        except sqlite3.Error as exc:
            raise PersistenceError(f"Restore failed, previous data kept: {exc}") from exc

        summary = ", ".join(f"{t}={counts[t]}" for t in TABLE_ORDER)
        logger.info("Restore complete: %s", summary)
        self.audit.log_audit("BACKUP", "Restore", summary)
        return counts
