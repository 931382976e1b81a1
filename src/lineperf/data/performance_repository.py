"""Daily performance record store.

A record is one ``daily_performance`` header plus its assembly and packing
line collections. Every write touches the header and its children in a
single transaction: callers see either the complete new state or the
complete old one.

Child collections are never diffed. Updating a record is an explicit full
replace: header fields are overwritten, both collections are deleted and
the submitted collections are inserted again.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any

from lineperf.core.models import DailyPerformance, LineItem, PerformanceRecord
from lineperf.data.audit import AuditLog
from lineperf.data.db import Db
from lineperf.data.entry import parse_header, parse_line_items
from lineperf.errors import ConflictError, NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

# kind -> (table, quantity column)
LINE_TABLES: dict[str, tuple[str, str]] = {
    "assy": ("assy_performance", "assy_output"),
    "packing": ("packing_performance", "packing_output"),
}

_HEADER_COLUMNS = (
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
)

HeaderInput = DailyPerformance | Mapping[str, Any]
LinesInput = Iterable[LineItem | Sequence[Any]] | None


def _header_params(h: DailyPerformance) -> tuple:
    return (
        h.date.isoformat(),
        h.line_shift,
        h.leader,
        int(h.mp),
        int(h.absent),
        int(h.separated_mp),
        int(h.plan),
        int(h.no_ot_mp),
        int(h.ot_mp),
        float(h.ot_hours),
        float(h.assy_wt),
        int(h.qc),
    )


def _row_to_header(row) -> DailyPerformance:
    return DailyPerformance(
        id=int(row["id"]),
        date=date.fromisoformat(str(row["date"])[:10]),
        line_shift=str(row["line_shift"]),
        leader=str(row["leader"]),
        mp=int(row["mp"] or 0),
        absent=int(row["absent"] or 0),
        separated_mp=int(row["separated_mp"] or 0),
        plan=int(row["plan"] or 0),
        no_ot_mp=int(row["no_ot_mp"] or 0),
        ot_mp=int(row["ot_mp"] or 0),
        ot_hours=float(row["ot_hours"] or 0.0),
        assy_wt=float(row["assy_wt"] or 0.0),
        qc=int(row["qc"] or 0),
        total_assy_output=int(row["total_assy_output"] or 0),
    )


class PerformanceRepository:
    def __init__(self, db: Db, audit: AuditLog | None = None):
        self.db = db
        self.audit = audit or AuditLog(db)

    # ---------- Writes ----------
    @staticmethod
    def _insert_lines(con: sqlite3.Connection, *, record_id: int, kind: str, items: list[LineItem]) -> None:
        table, qty_col = LINE_TABLES[kind]
        for item in items:
            con.execute(
                f"INSERT INTO {table}(daily_performance_id, product_id, {qty_col}) VALUES(?, ?, ?)",
                (record_id, item.product_id, item.quantity),
            )

    @staticmethod
    def _delete_lines(con: sqlite3.Connection, *, record_id: int) -> None:
        for table, _ in LINE_TABLES.values():
            con.execute(f"DELETE FROM {table} WHERE daily_performance_id = ?", (record_id,))

    def create_record(
        self,
        *,
        header: HeaderInput,
        assy_lines: LinesInput = None,
        packing_lines: LinesInput = None,
    ) -> int:
        """Insert a header and both line collections; returns the new header id."""
        h = parse_header(header)
        assy = parse_line_items(assy_lines, kind="assy")
        packing = parse_line_items(packing_lines, kind="packing")
        total_assy_output = sum(i.quantity for i in assy)

        placeholders = ", ".join("?" for _ in _HEADER_COLUMNS)
        try:
            with self.db.connect(begin="IMMEDIATE") as con:
                cur = con.execute(
                    f"INSERT INTO daily_performance({', '.join(_HEADER_COLUMNS)}, total_assy_output) "
                    f"VALUES({placeholders}, ?)",
                    (*_header_params(h), total_assy_output),
                )
                record_id = int(cur.lastrowid)
                self._insert_lines(con, record_id=record_id, kind="assy", items=assy)
                self._insert_lines(con, record_id=record_id, kind="packing", items=packing)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not save performance record: {exc}") from exc

        logger.info(
            "Created record %s (%s %s): %s assy lines, %s packing lines",
            record_id, h.date.isoformat(), h.line_shift, len(assy), len(packing),
        )
        self.audit.log_audit("PERFORMANCE", "Create Record", f"id={record_id} {h.date.isoformat()} {h.line_shift}")
        return record_id

    def replace_record(
        self,
        *,
        record_id: int,
        header: HeaderInput,
        assy_lines: LinesInput = None,
        packing_lines: LinesInput = None,
    ) -> None:
        """Full replace of a record: header fields plus both child collections.

        Existing children are deleted and the submitted ones inserted again;
        there is no merge with what was stored before.
        """
        record_id = int(record_id)
        h = parse_header(header)
        assy = parse_line_items(assy_lines, kind="assy")
        packing = parse_line_items(packing_lines, kind="packing")
        total_assy_output = sum(i.quantity for i in assy)

        assignments = ", ".join(f"{c} = ?" for c in _HEADER_COLUMNS)
        try:
            with self.db.connect(begin="IMMEDIATE") as con:
                cur = con.execute(
                    f"UPDATE daily_performance SET {assignments}, total_assy_output = ?, "
                    "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (*_header_params(h), total_assy_output, record_id),
                )
                if cur.rowcount == 0:
                    raise NotFoundError(f"Record {record_id} not found")
                self._delete_lines(con, record_id=record_id)
                self._insert_lines(con, record_id=record_id, kind="assy", items=assy)
                self._insert_lines(con, record_id=record_id, kind="packing", items=packing)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not update record {record_id}: {exc}") from exc

        logger.info(
            "Replaced record %s: %s assy lines, %s packing lines", record_id, len(assy), len(packing)
        )
        self.audit.log_audit("PERFORMANCE", "Replace Record", f"id={record_id}")

    def delete_record(self, *, record_id: int) -> None:
        """Delete both child collections, then the header."""
        record_id = int(record_id)
        try:
            with self.db.connect(begin="IMMEDIATE") as con:
                exists = con.execute("SELECT 1 FROM daily_performance WHERE id = ?", (record_id,)).fetchone()
                if exists is None:
                    raise NotFoundError(f"Record {record_id} not found")
                self._delete_lines(con, record_id=record_id)
                con.execute("DELETE FROM daily_performance WHERE id = ?", (record_id,))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not delete record {record_id}: {exc}") from exc

        logger.info("Deleted record %s", record_id)
        self.audit.log_audit("PERFORMANCE", "Delete Record", f"id={record_id}")

    def delete_product(self, *, product_id: int) -> None:
        """Delete a catalog product unless any line item references it."""
        product_id = int(product_id)
        try:
            with self.db.connect(begin="IMMEDIATE") as con:
                row = con.execute("SELECT product_code FROM products WHERE id = ?", (product_id,)).fetchone()
                if row is None:
                    raise NotFoundError(f"Product {product_id} not found")
                in_use = 0
                for table, _ in LINE_TABLES.values():
                    in_use += int(
                        con.execute(f"SELECT COUNT(*) FROM {table} WHERE product_id = ?", (product_id,)).fetchone()[0]
                    )
                if in_use:
                    raise ConflictError(
                        f"Cannot delete product {row['product_code']}: "
                        f"it is used in {in_use} performance line(s)"
                    )
                con.execute("DELETE FROM products WHERE id = ?", (product_id,))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not delete product {product_id}: {exc}") from exc

        logger.info("Deleted product %s (%s)", product_id, row["product_code"])
        self.audit.log_audit("MASTER_DATA", "Delete Product", f"id={product_id} code={row['product_code']}")

    # ---------- Reads ----------
    def get_record(self, *, record_id: int) -> PerformanceRecord:
        record_id = int(record_id)
        with self.db.connect() as con:
            row = con.execute("SELECT * FROM daily_performance WHERE id = ?", (record_id,)).fetchone()
            if row is None:
                raise NotFoundError(f"Record {record_id} not found")
            lines = {kind: self._fetch_lines(con, kind=kind, record_ids=[record_id]) for kind in LINE_TABLES}
        return PerformanceRecord(
            header=_row_to_header(row),
            assy_lines=tuple(lines["assy"].get(record_id, [])),
            packing_lines=tuple(lines["packing"].get(record_id, [])),
        )

    def list_records(
        self,
        *,
        day: date | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        line_shift: str | None = None,
    ) -> list[DailyPerformance]:
        """Headers matching the filters, newest day first."""
        where: list[str] = []
        params: list[Any] = []
        if day is not None:
            where.append("date = ?")
            params.append(day.isoformat())
        if date_from is not None:
            where.append("date >= ?")
            params.append(date_from.isoformat())
        if date_to is not None:
            where.append("date <= ?")
            params.append(date_to.isoformat())
        if line_shift:
            where.append("line_shift = ?")
            params.append(str(line_shift).strip())

        sql = "SELECT * FROM daily_performance"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY date DESC, line_shift, id"
        with self.db.connect() as con:
            rows = con.execute(sql, params).fetchall()
        return [_row_to_header(r) for r in rows]

    @staticmethod
    def _fetch_lines(con: sqlite3.Connection, *, kind: str, record_ids: list[int]) -> dict[int, list[LineItem]]:
        table, qty_col = LINE_TABLES[kind]
        out: dict[int, list[LineItem]] = {}
        if not record_ids:
            return out
        # Chunk to stay under SQLITE_MAX_VARIABLE_NUMBER on old builds.
        for start in range(0, len(record_ids), 500):
            chunk = record_ids[start:start + 500]
            marks = ", ".join("?" for _ in chunk)
            rows = con.execute(
                f"SELECT daily_performance_id, product_id, {qty_col} AS quantity FROM {table} "
                f"WHERE daily_performance_id IN ({marks}) ORDER BY id",
                chunk,
            ).fetchall()
            for r in rows:
                out.setdefault(int(r["daily_performance_id"]), []).append(
                    LineItem(product_id=int(r["product_id"]), quantity=int(r["quantity"] or 0))
                )
        return out

    def get_line_items(self, *, kind: str, record_ids: Iterable[int]) -> dict[int, list[LineItem]]:
        if kind not in LINE_TABLES:
            raise ValueError(f"unsupported line kind: {kind!r}")
        ids = sorted({int(i) for i in record_ids})
        with self.db.connect() as con:
            return self._fetch_lines(con, kind=kind, record_ids=ids)

    def get_assy_lines(self, record_ids: Iterable[int]) -> dict[int, list[LineItem]]:
        return self.get_line_items(kind="assy", record_ids=record_ids)

    def get_packing_lines(self, record_ids: Iterable[int]) -> dict[int, list[LineItem]]:
        return self.get_line_items(kind="packing", record_ids=record_ids)

    def list_line_shifts(self) -> list[str]:
        with self.db.connect() as con:
            rows = con.execute("SELECT DISTINCT line_shift FROM daily_performance ORDER BY line_shift").fetchall()
        return [str(r[0]) for r in rows]

    def count_rows(self) -> dict[str, int]:
        """Row counts per stored table (products first, children last)."""
        tables = ("products", "daily_performance", "assy_performance", "packing_performance")
        with self.db.connect() as con:
            return {t: int(con.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0]) for t in tables}
