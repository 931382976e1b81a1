from datetime import date
from pathlib import Path

import pytest

from lineperf.core.models import LineItem
from lineperf.data.db import Db
from lineperf.data.repository import Repository
from lineperf.errors import ConflictError, NotFoundError, PersistenceError, ValidationError


def header_fields(**overrides) -> dict:
    fields = {
        "date": "2024-03-04",
        "line_shift": "L1-A",
        "leader": "Ana",
        "mp": 50,
        "absent": 5,
        "separated_mp": 1,
        "plan": 100,
        "no_ot_mp": 45,
        "ot_mp": 5,
        "ot_hours": 2.0,
        "assy_wt": 7.66,
    }
    fields.update(overrides)
    return fields


@pytest.fixture()
def repo(tmp_path) -> Repository:
    db = Db(Path(tmp_path) / "test.db")
    db.ensure_schema()
    return Repository(db)


@pytest.fixture()
def products(repo) -> dict[str, int]:
    return {
        "A": repo.catalog.add_product(product_code="WH-100", circuit=250, mhr=0.5),
        "B": repo.catalog.add_product(product_code="WH-200", circuit=10, mhr=1.5),
    }


def test_create_and_get_record(repo, products):
    record_id = repo.records.create_record(
        header=header_fields(),
        assy_lines=[(products["A"], 80), (products["B"], "8"), ("", ""), (products["B"], 0)],
        packing_lines=[(products["A"], 70)],
    )

    rec = repo.records.get_record(record_id=record_id)
    assert rec.header.id == record_id
    assert rec.header.date == date(2024, 3, 4)
    assert rec.header.total_assy_output == 88
    assert rec.assy_lines == (LineItem(products["A"], 80), LineItem(products["B"], 8))
    assert rec.packing_lines == (LineItem(products["A"], 70),)
    assert repo.records.count_rows() == {
        "products": 2,
        "daily_performance": 1,
        "assy_performance": 2,
        "packing_performance": 1,
    }

    entries = repo.get_recent_audit_entries()
    assert entries[0].message == "Create Record"


def test_create_with_missing_field_persists_nothing(repo, products):
    fields = header_fields()
    del fields["leader"]
    with pytest.raises(ValidationError):
        repo.records.create_record(header=fields, assy_lines=[(products["A"], 5)])

    assert repo.records.count_rows()["daily_performance"] == 0
    assert repo.records.count_rows()["assy_performance"] == 0


def test_create_with_unknown_product_rolls_back(repo, products):
    with pytest.raises(PersistenceError) as exc_info:
        repo.records.create_record(header=header_fields(), assy_lines=[(products["A"], 5), (999, 1)])

    assert exc_info.value.__cause__ is not None
    counts = repo.records.count_rows()
    assert counts["daily_performance"] == 0
    assert counts["assy_performance"] == 0


def test_replace_record_is_full_replace(repo, products):
    record_id = repo.records.create_record(
        header=header_fields(),
        assy_lines=[(products["A"], 80)],
        packing_lines=[(products["A"], 70), (products["B"], 3)],
    )

    repo.records.replace_record(
        record_id=record_id,
        header=header_fields(leader="Bea", plan=120),
        assy_lines=[(products["B"], 30), (products["B"], 10)],
        packing_lines=[],
    )

    rec = repo.records.get_record(record_id=record_id)
    assert rec.header.leader == "Bea"
    assert rec.header.plan == 120
    assert rec.header.total_assy_output == 40
    assert rec.assy_lines == (LineItem(products["B"], 30), LineItem(products["B"], 10))
    assert rec.packing_lines == ()


def test_replace_record_failure_keeps_previous_state(repo, products):
    record_id = repo.records.create_record(
        header=header_fields(),
        assy_lines=[(products["A"], 80)],
        packing_lines=[(products["B"], 4)],
    )
    before = repo.records.get_record(record_id=record_id)

    # Second assembly line references a product that does not exist.
    with pytest.raises(PersistenceError):
        repo.records.replace_record(
            record_id=record_id,
            header=header_fields(leader="Bea"),
            assy_lines=[(products["A"], 10), (12345, 5)],
            packing_lines=[(products["A"], 1)],
        )

    assert repo.records.get_record(record_id=record_id) == before


def test_replace_unknown_record(repo, products):
    with pytest.raises(NotFoundError):
        repo.records.replace_record(record_id=42, header=header_fields(), assy_lines=[(products["A"], 1)])


def test_delete_record_removes_children(repo, products):
    record_id = repo.records.create_record(
        header=header_fields(),
        assy_lines=[(products["A"], 80)],
        packing_lines=[(products["A"], 70)],
    )

    repo.records.delete_record(record_id=record_id)

    with pytest.raises(NotFoundError):
        repo.records.get_record(record_id=record_id)
    counts = repo.records.count_rows()
    assert counts["assy_performance"] == 0
    assert counts["packing_performance"] == 0
    assert counts["products"] == 2

    with pytest.raises(NotFoundError):
        repo.records.delete_record(record_id=record_id)


def test_delete_product_guarded_by_references(repo, products):
    repo.records.create_record(
        header=header_fields(),
        assy_lines=[],
        packing_lines=[(products["B"], 3)],
    )

    with pytest.raises(ConflictError):
        repo.records.delete_product(product_id=products["B"])
    assert repo.catalog.get_product(products["B"]).product_code == "WH-200"

    repo.records.delete_product(product_id=products["A"])
    with pytest.raises(NotFoundError):
        repo.catalog.get_product(products["A"])

    with pytest.raises(NotFoundError):
        repo.records.delete_product(product_id=products["A"])


def test_list_records_filters(repo, products):
    repo.records.create_record(header=header_fields(date="2024-03-04", line_shift="L1-A"))
    repo.records.create_record(header=header_fields(date="2024-03-04", line_shift="L2-B"))
    repo.records.create_record(header=header_fields(date="2024-03-05", line_shift="L1-A"))

    day = repo.records.list_records(day=date(2024, 3, 4))
    assert [h.line_shift for h in day] == ["L1-A", "L2-B"]

    newest_first = repo.records.list_records(line_shift="L1-A")
    assert [h.date for h in newest_first] == [date(2024, 3, 5), date(2024, 3, 4)]

    ranged = repo.records.list_records(date_from=date(2024, 3, 5), date_to=date(2024, 3, 31))
    assert len(ranged) == 1

    assert repo.records.list_line_shifts() == ["L1-A", "L2-B"]


def test_get_line_items_by_kind(repo, products):
    r1 = repo.records.create_record(header=header_fields(), assy_lines=[(products["A"], 1)])
    r2 = repo.records.create_record(header=header_fields(), packing_lines=[(products["B"], 2)])

    assy = repo.records.get_assy_lines([r1, r2])
    packing = repo.records.get_packing_lines([r1, r2])

    assert assy == {r1: [LineItem(products["A"], 1)]}
    assert packing == {r2: [LineItem(products["B"], 2)]}
    with pytest.raises(ValueError):
        repo.records.get_line_items(kind="qc", record_ids=[r1])


def test_oversized_quantity_is_a_validation_error(repo, products):
    record_id = repo.records.create_record(header=header_fields(), assy_lines=[(products["A"], 80)])
    before = repo.records.get_record(record_id=record_id)

    with pytest.raises(ValidationError):
        repo.records.create_record(header=header_fields(), assy_lines=[(products["A"], "9" * 25)])
    with pytest.raises(ValidationError):
        repo.records.replace_record(
            record_id=record_id,
            header=header_fields(plan=10**30),
            assy_lines=[(products["A"], 1)],
        )

    assert repo.records.count_rows()["daily_performance"] == 1
    assert repo.records.get_record(record_id=record_id) == before
