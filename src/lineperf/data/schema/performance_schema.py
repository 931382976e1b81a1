from __future__ import annotations

import sqlite3


def ensure_schema(con: sqlite3.Connection) -> None:
    con.executescript(
        """
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL DEFAULT(datetime('now', 'localtime')),
            category TEXT NOT NULL,
            message TEXT NOT NULL,
            details TEXT
        );

        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            product_code TEXT NOT NULL UNIQUE,
            circuit REAL NOT NULL,
            mhr REAL NOT NULL,
            qty_sh_pack INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS daily_performance (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            date TEXT NOT NULL,
            line_shift TEXT NOT NULL,
            leader TEXT NOT NULL,
            mp INTEGER NOT NULL,
            absent INTEGER NOT NULL DEFAULT 0,
            separated_mp INTEGER NOT NULL DEFAULT 0,
            plan INTEGER NOT NULL,
            no_ot_mp INTEGER NOT NULL DEFAULT 0,
            ot_mp INTEGER NOT NULL DEFAULT 0,
            ot_hours REAL NOT NULL DEFAULT 0,
            assy_wt REAL NOT NULL DEFAULT 0,
            qc INTEGER NOT NULL DEFAULT 0,
            -- Write-time snapshot of SUM(assy_output); live aggregation wins.
            total_assy_output INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        );

        CREATE INDEX IF NOT EXISTS idx_daily_performance_date_line
            ON daily_performance(date, line_shift);

        CREATE TABLE IF NOT EXISTS assy_performance (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            daily_performance_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            assy_output INTEGER NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(daily_performance_id) REFERENCES daily_performance(id) ON DELETE CASCADE,
            FOREIGN KEY(product_id) REFERENCES products(id)
        );

        CREATE INDEX IF NOT EXISTS idx_assy_performance_header
            ON assy_performance(daily_performance_id);
        CREATE INDEX IF NOT EXISTS idx_assy_performance_product
            ON assy_performance(product_id);

        CREATE TABLE IF NOT EXISTS packing_performance (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            daily_performance_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            packing_output INTEGER NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(daily_performance_id) REFERENCES daily_performance(id) ON DELETE CASCADE,
            FOREIGN KEY(product_id) REFERENCES products(id)
        );

        CREATE INDEX IF NOT EXISTS idx_packing_performance_header
            ON packing_performance(daily_performance_id);
        CREATE INDEX IF NOT EXISTS idx_packing_performance_product
            ON packing_performance(product_id);
        """
    )
