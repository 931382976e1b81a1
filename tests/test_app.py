import json
from pathlib import Path

import pytest

from lineperf.app import main
from lineperf.data.db import Db
from lineperf.data.repository import Repository


@pytest.fixture()
def db_path(tmp_path) -> Path:
    return Path(tmp_path) / "db" / "cli.db"


def test_init_db_creates_database(db_path):
    assert main(["--db", str(db_path), "init-db"]) == 0
    assert db_path.exists()


def test_import_backup_restore_cycle(db_path, tmp_path, capsys):
    products = Path(tmp_path) / "products.txt"
    products.write_text("WH-100,250,0.5,10\nWH-200,10,1.5,0\n", encoding="utf-8")

    assert main(["--db", str(db_path), "import-products", str(products)]) == 0
    assert "added: 2, skipped: 0" in capsys.readouterr().out

    backup_file = Path(tmp_path) / "snap.json"
    assert main(["--db", str(db_path), "backup", "--out", str(backup_file)]) == 0
    snap = json.loads(backup_file.read_text(encoding="utf-8"))
    assert len(snap["products"]) == 2

    repo = Repository(Db(db_path))
    repo.catalog.add_product(product_code="EXTRA", circuit=1, mhr=1)

    assert main(["--db", str(db_path), "restore", str(backup_file)]) == 0
    assert [p.product_code for p in repo.catalog.list_products()] == ["WH-100", "WH-200"]


def test_report_and_delete_product(db_path, capsys):
    main(["--db", str(db_path), "init-db"])
    repo = Repository(Db(db_path))
    a = repo.catalog.add_product(product_code="WH-100", circuit=250, mhr=0.5)
    b = repo.catalog.add_product(product_code="WH-200", circuit=10, mhr=1.5)
    repo.records.create_record(
        header={
            "date": "2024-03-04",
            "line_shift": "L1-A",
            "leader": "Ana",
            "mp": 50,
            "absent": 5,
            "separated_mp": 1,
            "plan": 100,
            "no_ot_mp": 45,
            "ot_mp": 5,
            "ot_hours": 2,
            "assy_wt": 7.66,
        },
        assy_lines=[(a, 88)],
    )
    capsys.readouterr()

    assert main(["--db", str(db_path), "report", "--date", "2024-03-04"]) == 0
    out = capsys.readouterr().out
    assert "L1-A" in out
    assert "88.00" in out

    # In use: refused with a non-zero exit code.
    assert main(["--db", str(db_path), "delete-product", str(a)]) == 1
    assert main(["--db", str(db_path), "delete-product", str(b)]) == 0
    assert [p.product_code for p in repo.catalog.list_products()] == ["WH-100"]


def test_restore_rejects_malformed_file(db_path, tmp_path):
    bad = Path(tmp_path) / "bad.json"
    bad.write_text("{not json", encoding="utf-8")

    assert main(["--db", str(db_path), "restore", str(bad)]) == 1
