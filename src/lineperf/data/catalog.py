"""Product catalog: lookup contract plus the small admin surface the core needs.

The aggregation engine only consumes :meth:`ProductCatalog.lookup`. Catalog
screens are outside this package; :class:`CatalogRepository` offers just the
validated writes used for seeding, corrections and bulk import.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable

from lineperf.core.models import Product
from lineperf.data.db import Db
from lineperf.data.excel_io import coerce_float, is_blank, normalize_columns, parse_int_strict, read_excel_bytes
from lineperf.errors import NotFoundError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

_PRODUCT_COLUMNS = "id, product_code, circuit, mhr, qty_sh_pack"


def _row_to_product(row) -> Product:
    return Product(
        id=int(row["id"]),
        product_code=str(row["product_code"]),
        circuit=float(row["circuit"]),
        mhr=float(row["mhr"]),
        qty_sh_pack=int(row["qty_sh_pack"] or 0),
    )


class ProductCatalog:
    """Read-only, in-memory snapshot of the catalog keyed by product id."""

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._by_id: dict[int, Product] = {p.id: p for p in products}

    def lookup(self, product_id: int) -> Product | None:
        return self._by_id.get(int(product_id))

    def get_product(self, product_id: int) -> Product:
        product = self.lookup(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def __len__(self) -> int:
        return len(self._by_id)


class CatalogRepository:
    def __init__(self, db: Db):
        self.db = db

    # ---------- Lookup ----------
    def load_catalog(self) -> ProductCatalog:
        return ProductCatalog(self.list_products())

    def list_products(self) -> list[Product]:
        with self.db.connect() as con:
            rows = con.execute(f"SELECT {_PRODUCT_COLUMNS} FROM products ORDER BY product_code").fetchall()
        return [_row_to_product(r) for r in rows]

    def get_product(self, product_id: int) -> Product:
        with self.db.connect() as con:
            row = con.execute(f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id = ?", (int(product_id),)).fetchone()
        if row is None:
            raise NotFoundError(f"Product {product_id} not found")
        return _row_to_product(row)

    def get_product_by_code(self, product_code: str) -> Product | None:
        with self.db.connect() as con:
            row = con.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE product_code = ?",
                (str(product_code).strip(),),
            ).fetchone()
        return _row_to_product(row) if row is not None else None

    # ---------- Admin writes ----------
    @staticmethod
    def _validate(product_code, circuit, mhr, qty_sh_pack) -> tuple[str, float, float, int]:
        code = "" if is_blank(product_code) else str(product_code).strip()
        if not code:
            raise ValidationError("product_code is empty")
        c = coerce_float(circuit)
        if c is None or c <= 0:
            raise ValidationError(f"circuit must be a positive number: {circuit!r}")
        m = coerce_float(mhr)
        if m is None or m <= 0:
            raise ValidationError(f"mhr must be a positive number: {mhr!r}")
        if is_blank(qty_sh_pack):
            q = 0
        else:
            try:
                q = parse_int_strict(qty_sh_pack, field="qty_sh_pack")
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc
        return code, c, m, q

    def add_product(self, *, product_code: str, circuit: float, mhr: float, qty_sh_pack: int = 0) -> int:
        """Insert a product and return its id. Duplicate codes are a ValidationError."""
        code, c, m, q = self._validate(product_code, circuit, mhr, qty_sh_pack)
        try:
            with self.db.connect() as con:
                exists = con.execute("SELECT 1 FROM products WHERE product_code = ?", (code,)).fetchone()
                if exists is not None:
                    raise ValidationError(f"Product code already exists: {code}")
                cur = con.execute(
                    "INSERT INTO products(product_code, circuit, mhr, qty_sh_pack) VALUES(?, ?, ?, ?)",
                    (code, c, m, q),
                )
                product_id = int(cur.lastrowid)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not add product {code}: {exc}") from exc
        logger.info("Added product %s (id=%s)", code, product_id)
        return product_id

    def update_product(self, *, product_id: int, product_code: str, circuit: float, mhr: float, qty_sh_pack: int = 0) -> None:
        """Administrative correction of a catalog row."""
        code, c, m, q = self._validate(product_code, circuit, mhr, qty_sh_pack)
        try:
            with self.db.connect() as con:
                cur = con.execute(
                    """
                    UPDATE products
                    SET product_code = ?, circuit = ?, mhr = ?, qty_sh_pack = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE id = ?
                    """,
                    (code, c, m, q, int(product_id)),
                )
                if cur.rowcount == 0:
                    raise NotFoundError(f"Product {product_id} not found")
        except sqlite3.IntegrityError as exc:
            raise ValidationError(f"Product code already exists: {code}") from exc
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not update product {product_id}: {exc}") from exc
        logger.info("Updated product %s (id=%s)", code, product_id)

    # ---------- Bulk import ----------
    def _import_rows(self, rows: Iterable[tuple[object, object, object, object]], *, source: str) -> dict[str, int]:
        """Insert new products; existing codes and malformed rows are skipped."""
        added = 0
        skipped = 0
        with self.db.connect(begin="IMMEDIATE") as con:
            for pos, (code, circuit, mhr, qty) in enumerate(rows, start=1):
                try:
                    code_v, c, m, q = self._validate(code, circuit, mhr, qty)
                except ValidationError as exc:
                    logger.warning("%s row %s skipped: %s", source, pos, exc)
                    skipped += 1
                    continue
                exists = con.execute("SELECT 1 FROM products WHERE product_code = ?", (code_v,)).fetchone()
                if exists is not None:
                    skipped += 1
                    continue
                con.execute(
                    "INSERT INTO products(product_code, circuit, mhr, qty_sh_pack) VALUES(?, ?, ?, ?)",
                    (code_v, c, m, q),
                )
                added += 1
        logger.info("Product import (%s): %s added, %s skipped", source, added, skipped)
        return {"added": added, "skipped": skipped}

    def import_products_text(self, text: str) -> dict[str, int]:
        """Import ``product_code,circuit,mhr,qty_sh_pack`` lines.

        Blank lines are ignored; lines without exactly four fields are skipped.
        """
        rows: list[tuple[object, object, object, object]] = []
        skipped = 0
        for line in str(text or "").splitlines():
            line = line.strip()
            if not line:
                continue
            parts = [p.strip() for p in line.split(",")]
            if len(parts) != 4:
                logger.warning("Product import line skipped (expected 4 fields): %r", line)
                skipped += 1
                continue
            rows.append((parts[0], parts[1], parts[2], parts[3]))
        try:
            result = self._import_rows(rows, source="text")
        except sqlite3.Error as exc:
            raise PersistenceError(f"Product import failed: {exc}") from exc
        result["skipped"] += skipped
        return result

    def import_products_excel_bytes(self, content: bytes) -> dict[str, int]:
        """Import products from the first sheet of an .xlsx workbook.

        Required columns (after normalization): product_code, circuit, mhr.
        ``qty_sh_pack`` is optional.
        """
        df = normalize_columns(read_excel_bytes(content))
        required = {"product_code", "circuit", "mhr"}
        missing = sorted(required - set(df.columns))
        if missing:
            raise ValidationError(f"Missing columns: {missing}. Detected columns: {sorted(df.columns)}")

        rows = [
            (r.get("product_code"), r.get("circuit"), r.get("mhr"), r.get("qty_sh_pack"))
            for _, r in df.iterrows()
        ]
        try:
            return self._import_rows(rows, source="excel")
        except sqlite3.Error as exc:
            raise PersistenceError(f"Product import failed: {exc}") from exc
