"""Normalization of shift entry submissions.

The entry form submits a flat header field set plus, for assembly and for
packing, an ordered sequence of ``(product_ref, quantity)`` pairs. Pairs with
a blank product or a blank/zero quantity are dropped silently (they are the
empty rows of the form); anything else that does not parse is a
:class:`ValidationError`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, replace
from typing import Any

from lineperf.core.models import DailyPerformance, LineItem
from lineperf.data.excel_io import coerce_date, coerce_float, is_blank, parse_int_strict
from lineperf.errors import ValidationError

REQUIRED_HEADER_FIELDS: tuple[str, ...] = (
    "date",
    "line_shift",
    "leader",
    "mp",
    "absent",
    "separated_mp",
    "plan",
    "no_ot_mp",
    "ot_mp",
    "assy_wt",
)

_INT_FIELDS = ("mp", "absent", "separated_mp", "plan", "no_ot_mp", "ot_mp")


def _is_empty_ref(value: Any) -> bool:
    # Empty rows of the form post "", None or "0".
    if is_blank(value):
        return True
    if isinstance(value, str):
        value = value.strip()
    return value in (0, "0")


def _non_negative_float(value: Any, *, field: str) -> float:
    v = coerce_float(value)
    if v is None:
        raise ValidationError(f"{field} is invalid: {value!r}")
    if v < 0:
        raise ValidationError(f"{field} cannot be negative")
    return v


def parse_header(fields: Mapping[str, Any] | DailyPerformance) -> DailyPerformance:
    """Build a typed header from submitted form fields.

    ``qc`` and ``ot_hours`` are optional and default to 0. A header that is
    already a :class:`DailyPerformance` goes through the same checks; its
    ``id`` and ``total_assy_output`` are kept.
    """
    if isinstance(fields, DailyPerformance):
        parsed = parse_header(asdict(fields))
        return replace(parsed, id=fields.id, total_assy_output=fields.total_assy_output)

    for name in REQUIRED_HEADER_FIELDS:
        if name not in fields or is_blank(fields[name]):
            raise ValidationError(f"Required field '{name}' is missing.")

    line_shift = str(fields["line_shift"]).strip()
    leader = str(fields["leader"]).strip()

    try:
        day = coerce_date(fields["date"])
        ints = {name: parse_int_strict(fields[name], field=name) for name in _INT_FIELDS}
        qc_raw = fields.get("qc")
        qc = 0 if is_blank(qc_raw) else parse_int_strict(qc_raw, field="qc")
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    ot_hours_raw = fields.get("ot_hours")
    ot_hours = 0.0 if is_blank(ot_hours_raw) else _non_negative_float(ot_hours_raw, field="ot_hours")
    assy_wt = _non_negative_float(fields["assy_wt"], field="assy_wt")

    return DailyPerformance(
        date=day,
        line_shift=line_shift,
        leader=leader,
        qc=qc,
        ot_hours=ot_hours,
        assy_wt=assy_wt,
        **ints,
    )


def parse_line_items(pairs: Iterable[LineItem | Sequence[Any]] | None, *, kind: str = "line") -> list[LineItem]:
    """Typed line items from submitted pairs, blank pairs removed.

    Zero quantities are treated as blank, never stored as zero rows.
    """
    out: list[LineItem] = []
    for pos, pair in enumerate(pairs or ()):
        if isinstance(pair, LineItem):
            product_ref, quantity = pair.product_id, pair.quantity
        else:
            try:
                product_ref, quantity = pair
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"{kind} #{pos + 1}: expected (product, quantity) pair") from exc

        if _is_empty_ref(product_ref) or _is_empty_ref(quantity):
            continue

        try:
            product_id = parse_int_strict(product_ref, field=f"{kind} #{pos + 1} product")
            qty = parse_int_strict(quantity, field=f"{kind} #{pos + 1} quantity")
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if qty == 0:
            continue
        out.append(LineItem(product_id=product_id, quantity=qty))
    return out


def pair_line_items(product_refs: Sequence[Any] | None, quantities: Sequence[Any] | None) -> list[tuple[Any, Any]]:
    """Zip the legacy parallel arrays (``assy_product_id[]`` / ``assy_output[]``).

    A missing quantity at a position pairs with None and is filtered later.
    """
    refs = list(product_refs or ())
    qtys = list(quantities or ())
    return [(ref, qtys[i] if i < len(qtys) else None) for i, ref in enumerate(refs)]
