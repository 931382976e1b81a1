from __future__ import annotations


from contextlib import contextmanager
import sqlite3
from pathlib import Path

from lineperf.data.schema import ensure_performance_schema


class Db:
    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connect(self, *, begin: str | None = None):
        """Open a connection that commits on success and rolls back on any error.

        ``begin`` opens the transaction explicitly ("IMMEDIATE" or "EXCLUSIVE")
        so that every statement of a multi-statement write runs under the same
        lock. Without it sqlite starts a deferred transaction on the first write.
        """
        con = sqlite3.connect(self.path, timeout=20.0)
        con.row_factory = sqlite3.Row
        try:
            # Must be set outside a transaction; applies to this connection only.
            con.execute("PRAGMA foreign_keys=ON;")
            if begin:
                mode = str(begin).strip().upper()
                if mode not in {"DEFERRED", "IMMEDIATE", "EXCLUSIVE"}:
                    raise ValueError(f"unsupported begin mode: {begin!r}")
                con.execute(f"BEGIN {mode}")
            yield con
            con.commit()
        except Exception:
            con.rollback()
            raise
        finally:
            con.close()

    def ensure_schema(self) -> None:
        con = sqlite3.connect(self.path, timeout=10.0)
        try:
            con.execute("PRAGMA journal_mode=WAL;")
            con.execute("PRAGMA foreign_keys=ON;")
            ensure_performance_schema(con)
            con.commit()
        finally:
            con.close()
