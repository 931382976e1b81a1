import io
from pathlib import Path

import pandas as pd
import pytest

from lineperf.data.db import Db
from lineperf.data.repository import Repository
from lineperf.errors import NotFoundError, ValidationError


def make_excel_bytes(data: dict) -> bytes:
    """Create a minimal Excel file from a column->values dict."""
    bio = io.BytesIO()
    pd.DataFrame(data).to_excel(bio, index=False)
    bio.seek(0)
    return bio.read()


@pytest.fixture()
def repo(tmp_path) -> Repository:
    db = Db(Path(tmp_path) / "test.db")
    db.ensure_schema()
    return Repository(db)


def test_add_product_and_lookup(repo):
    pid = repo.catalog.add_product(product_code=" WH-100 ", circuit="250", mhr="0,5", qty_sh_pack="12")

    p = repo.catalog.get_product(pid)
    assert p.product_code == "WH-100"
    assert p.circuit == 250.0
    assert p.mhr == 0.5
    assert p.qty_sh_pack == 12

    catalog = repo.catalog.load_catalog()
    assert len(catalog) == 1
    assert catalog.lookup(pid) == p
    assert catalog.lookup(pid + 1) is None
    with pytest.raises(NotFoundError):
        catalog.get_product(pid + 1)

    assert repo.catalog.get_product_by_code("WH-100") == p
    assert repo.catalog.get_product_by_code("nope") is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"product_code": "", "circuit": 1, "mhr": 1},
        {"product_code": "X", "circuit": 0, "mhr": 1},
        {"product_code": "X", "circuit": 1, "mhr": -0.1},
        {"product_code": "X", "circuit": "abc", "mhr": 1},
        {"product_code": "X", "circuit": 1, "mhr": 1, "qty_sh_pack": -1},
    ],
)
def test_add_product_validation(repo, kwargs):
    with pytest.raises(ValidationError):
        repo.catalog.add_product(**kwargs)
    assert repo.catalog.list_products() == []


def test_duplicate_code_rejected(repo):
    repo.catalog.add_product(product_code="WH-100", circuit=1, mhr=1)
    with pytest.raises(ValidationError, match="already exists"):
        repo.catalog.add_product(product_code="WH-100", circuit=2, mhr=2)


def test_update_product(repo):
    a = repo.catalog.add_product(product_code="A", circuit=1, mhr=1)
    repo.catalog.add_product(product_code="B", circuit=1, mhr=1)

    repo.catalog.update_product(product_id=a, product_code="A2", circuit=3, mhr=0.25, qty_sh_pack=4)
    assert repo.catalog.get_product(a).product_code == "A2"
    assert repo.catalog.get_product(a).mhr == 0.25

    with pytest.raises(ValidationError):
        repo.catalog.update_product(product_id=a, product_code="B", circuit=1, mhr=1)
    with pytest.raises(NotFoundError):
        repo.catalog.update_product(product_id=999, product_code="Z", circuit=1, mhr=1)


def test_import_products_text(repo):
    repo.catalog.add_product(product_code="EXISTING", circuit=1, mhr=1)
    text = "\n".join(
        [
            "WH-100,250,0.5,10",
            "",
            "WH-200, 10, 1.5, 0",
            "EXISTING,5,5,5",
            "BROKEN,1,1",
            "BAD,0,1,1",
        ]
    )

    result = repo.catalog.import_products_text(text)

    assert result == {"added": 2, "skipped": 3}
    codes = [p.product_code for p in repo.catalog.list_products()]
    assert codes == ["EXISTING", "WH-100", "WH-200"]
    assert repo.catalog.get_product_by_code("EXISTING").circuit == 1.0


def test_import_products_excel(repo):
    content = make_excel_bytes(
        {
            "Product Code": ["WH-100", "WH-200", None],
            "Circuit": [250, 10, 5],
            "MHR": [0.5, 1.5, 1],
            "Qty/Sh Pack": [10, None, 1],
        }
    )

    result = repo.catalog.import_products_excel_bytes(content)

    assert result == {"added": 2, "skipped": 1}
    assert repo.catalog.get_product_by_code("WH-100").qty_sh_pack == 10
    assert repo.catalog.get_product_by_code("WH-200").qty_sh_pack == 0


def test_import_products_excel_missing_columns(repo):
    content = make_excel_bytes({"code": ["A"], "circuit": [1]})
    with pytest.raises(ValidationError, match="Missing columns"):
        repo.catalog.import_products_excel_bytes(content)


def test_import_skips_oversized_pack_quantity(repo):
    result = repo.catalog.import_products_text("WH-100,250,0.5,99999999999999999999999\nWH-200,10,1.5,4\n")

    assert result == {"added": 1, "skipped": 1}
    assert repo.catalog.get_product_by_code("WH-100") is None
