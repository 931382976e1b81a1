"""Aggregation of a daily record into dashboard metrics and scores.

Everything here is a pure function of its inputs: the header, its line
items and a catalog lookup. Nothing is cached because the result depends
on the current catalog values; callers recompute on every request.

A line whose product is missing from the catalog still counts towards unit
output but contributes nothing to weighted (circuit / MHR) output, and is
reported in ``PerformanceMetrics.anomalies``. One bad line never blanks out
the whole computation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol

from lineperf.core.models import DailyPerformance, LineItem, Product
from lineperf.metrics import formulas

logger = logging.getLogger(__name__)


class CatalogLookup(Protocol):
    def lookup(self, product_id: int) -> Product | None: ...


@dataclass(frozen=True)
class PerformanceMetrics:
    record_id: int | None
    date: date
    line_shift: str
    leader: str
    plan: int

    total_assy_output: int
    total_packing_output: int
    total_circuit_output: float
    total_assy_output_mhr: float
    total_packing_output_mhr: float

    used_mhr: float
    efficiency: float
    assy_efficiency: float
    packing_efficiency: float
    plan_completion: float
    cph: float

    absent_rate: float
    separation_rate: float
    manning_rate: float
    effective_mp: int
    available_mp: int

    status: str
    anomalies: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ScoreBreakdown:
    absent_rate_score: float
    separation_rate_score: float
    plan_completion_score: float
    cph_score: float
    total_score: float
    tier: str


@dataclass(frozen=True)
class ScoredPerformance:
    metrics: PerformanceMetrics
    score: ScoreBreakdown


def _sum_lines(
    lines: Iterable[LineItem],
    catalog: CatalogLookup,
    *,
    kind: str,
    anomalies: list[str],
) -> tuple[int, float, float]:
    """(units, Σ units × circuit, Σ units × mhr) for one line collection."""
    units = 0
    circuit_total = 0.0
    mhr_total = 0.0
    for item in lines:
        qty = int(item.quantity)
        units += qty
        product = catalog.lookup(item.product_id)
        if product is None:
            anomalies.append(f"{kind}: unknown product {item.product_id} ({qty} units not weighted)")
            continue
        circuit_total += qty * float(product.circuit)
        mhr_total += qty * float(product.mhr)
    return units, circuit_total, mhr_total


def aggregate(
    header: DailyPerformance,
    assy_lines: Iterable[LineItem],
    packing_lines: Iterable[LineItem],
    catalog: CatalogLookup,
) -> PerformanceMetrics:
    """Derived metrics of one daily record."""
    anomalies: list[str] = []
    assy_units, circuit_output, assy_mhr = _sum_lines(assy_lines, catalog, kind="assy", anomalies=anomalies)
    packing_units, _, packing_mhr = _sum_lines(packing_lines, catalog, kind="packing", anomalies=anomalies)

    if anomalies:
        logger.warning(
            "Record %s (%s %s): %s line(s) reference unknown products",
            header.id, header.date.isoformat(), header.line_shift, len(anomalies),
        )

    used = formulas.used_labor_hours(header.no_ot_mp, header.ot_mp, header.ot_hours)
    completion = formulas.plan_completion(assy_units, header.plan)

    return PerformanceMetrics(
        record_id=header.id,
        date=header.date,
        line_shift=header.line_shift,
        leader=header.leader,
        plan=header.plan,
        total_assy_output=assy_units,
        total_packing_output=packing_units,
        total_circuit_output=circuit_output,
        total_assy_output_mhr=assy_mhr,
        total_packing_output_mhr=packing_mhr,
        used_mhr=used,
        # Raw unit output per used hour, as the line dashboards show it.
        efficiency=formulas.efficiency(assy_units, used),
        assy_efficiency=formulas.efficiency(assy_mhr, used),
        packing_efficiency=formulas.efficiency(packing_mhr, used),
        plan_completion=completion,
        cph=formulas.throughput_rate(circuit_output, used),
        absent_rate=formulas.rate_percent(header.absent, header.mp),
        separation_rate=formulas.rate_percent(header.separated_mp, header.mp),
        manning_rate=formulas.manning_rate(header.mp, header.absent, header.separated_mp),
        effective_mp=formulas.effective_manpower(header.mp, header.absent),
        available_mp=formulas.available_manpower(header.mp, header.absent, header.separated_mp),
        status=formulas.classify_status(completion),
        anomalies=tuple(anomalies),
    )


def max_observed_rate(metrics: Iterable[PerformanceMetrics]) -> float:
    """Best CPH of a comparison set, ignoring entries with no hours or no weighted output."""
    best = 0.0
    for m in metrics:
        if m.used_mhr > 0 and m.total_circuit_output > 0:
            best = max(best, m.cph)
    return best


def score(metrics: PerformanceMetrics, max_rate: float) -> ScoreBreakdown:
    ars = formulas.absent_rate_score(metrics.absent_rate)
    srs = formulas.separation_rate_score(metrics.separation_rate)
    pcs = formulas.plan_completion_score(metrics.plan_completion)
    cphs = formulas.throughput_score(metrics.cph, max_rate)
    total = formulas.composite_score(ars, srs, pcs, cphs)
    return ScoreBreakdown(
        absent_rate_score=ars,
        separation_rate_score=srs,
        plan_completion_score=pcs,
        cph_score=cphs,
        total_score=total,
        tier=formulas.classify_score(total),
    )


def score_comparison_set(metrics: Sequence[PerformanceMetrics]) -> list[ScoredPerformance]:
    """Score every entry against the best CPH of the same set."""
    best = max_observed_rate(metrics)
    return [ScoredPerformance(metrics=m, score=score(m, best)) for m in metrics]
