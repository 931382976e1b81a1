from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from lineperf.data.db import Db
from lineperf.data.excel_io import coerce_date
from lineperf.data.repository import Repository
from lineperf.errors import LineperfError
from lineperf.logging_conf import configure_logging
from lineperf.metrics.report import get_daily_report, rank_by_score, to_frame
from lineperf.settings import Settings, default_db_path

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Line performance records")
    parser.add_argument("--db", type=Path, default=None, help="sqlite database file")
    parser.add_argument("--log-level", type=str, default="INFO")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables if missing")

    p = sub.add_parser("backup", help="write a JSON snapshot of all data")
    p.add_argument("--out", type=Path, default=Path("backups"), help="file or directory")

    p = sub.add_parser("restore", help="replace all data with a JSON snapshot")
    p.add_argument("file", type=Path)

    p = sub.add_parser("import-products", help="import products from .xlsx or code,circuit,mhr,qty text")
    p.add_argument("file", type=Path)

    p = sub.add_parser("report", help="scored rows for one date")
    p.add_argument("--date", required=True)
    p.add_argument("--line-shift", default=None)

    p = sub.add_parser("delete-product", help="delete a product not used by any record")
    p.add_argument("product_id", type=int)
    return parser


def _run(args: argparse.Namespace, repo: Repository) -> int:
    if args.command == "init-db":
        logger.info("Schema ready at %s", repo.db.path)
        return 0

    if args.command == "backup":
        path = repo.backup.write_backup(args.out)
        print(path)
        return 0

    if args.command == "restore":
        counts = repo.backup.restore(args.file.read_bytes())
        for table, n in counts.items():
            print(f"{table}: {n}")
        return 0

    if args.command == "import-products":
        if args.file.suffix.lower() in {".xlsx", ".xlsm"}:
            result = repo.catalog.import_products_excel_bytes(args.file.read_bytes())
        else:
            result = repo.catalog.import_products_text(args.file.read_text(encoding="utf-8"))
        print(f"added: {result['added']}, skipped: {result['skipped']}")
        return 0

    if args.command == "report":
        day = coerce_date(args.date)
        rows = rank_by_score(get_daily_report(repo, day, line_shift=args.line_shift))
        if not rows:
            print(f"No records for {day.isoformat()}")
            return 0
        print(to_frame(rows).to_string(index=False, float_format=lambda v: f"{v:.2f}"))
        return 0

    if args.command == "delete-product":
        repo.records.delete_product(product_id=args.product_id)
        return 0

    raise ValueError(f"unknown command: {args.command!r}")


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    settings = Settings(db_path=args.db or default_db_path(), log_level=args.log_level)
    configure_logging(settings.log_level)

    db = Db(settings.db_path)
    db.ensure_schema()
    repo = Repository(db)

    try:
        return _run(args, repo)
    except (LineperfError, ValueError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1


if __name__ in {"__main__", "__mp_main__"}:
    sys.exit(main())
