"""Scored report rows for dashboards and exports.

Metrics are recomputed from stored line items on every call, against the
catalog as it is now. CPH scores are relative to the best CPH of the same
date, so the comparison set of a daily report is always the whole day even
when the caller filters to one line/shift.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import asdict
from datetime import date
from typing import TYPE_CHECKING

import pandas as pd

from lineperf.core.models import DailyPerformance
from lineperf.metrics.engine import PerformanceMetrics, ScoredPerformance, aggregate, score_comparison_set

if TYPE_CHECKING:
    from lineperf.data.repository import Repository

logger = logging.getLogger(__name__)

REPORT_COLUMNS = [
    "record_id",
    "date",
    "line_shift",
    "leader",
    "plan",
    "total_assy_output",
    "total_packing_output",
    "total_circuit_output",
    "used_mhr",
    "efficiency",
    "assy_efficiency",
    "packing_efficiency",
    "plan_completion",
    "cph",
    "absent_rate",
    "separation_rate",
    "manning_rate",
    "status",
    "absent_rate_score",
    "separation_rate_score",
    "plan_completion_score",
    "cph_score",
    "total_score",
    "tier",
]

_AVERAGE_COLUMNS = [
    "total_score",
    "plan_completion",
    "cph",
    "absent_rate",
    "separation_rate",
    "assy_efficiency",
    "packing_efficiency",
    "absent_rate_score",
    "separation_rate_score",
    "plan_completion_score",
    "cph_score",
]


def _metrics_for(repo: Repository, headers: Sequence[DailyPerformance]) -> list[PerformanceMetrics]:
    if not headers:
        return []
    catalog = repo.catalog.load_catalog()
    logger.debug("Aggregating %s headers against %s catalog products", len(headers), len(catalog))
    ids = [int(h.id) for h in headers if h.id is not None]
    assy = repo.records.get_assy_lines(ids)
    packing = repo.records.get_packing_lines(ids)
    return [aggregate(h, assy.get(h.id, []), packing.get(h.id, []), catalog) for h in headers]


def get_daily_report(repo: Repository, day: date, line_shift: str | None = None) -> list[ScoredPerformance]:
    """Scored rows of one date, optionally restricted to one line/shift."""
    headers = repo.records.list_records(day=day)
    scored = score_comparison_set(_metrics_for(repo, headers))
    if line_shift:
        wanted = str(line_shift).strip()
        scored = [s for s in scored if s.metrics.line_shift == wanted]
    logger.debug("Daily report %s (%s): %s rows", day.isoformat(), line_shift or "all", len(scored))
    return scored


def get_range_report(
    repo: Repository,
    date_from: date,
    date_to: date,
    line_shift: str | None = None,
) -> list[ScoredPerformance]:
    """Scored rows for a date range; each date is scored against its own best CPH."""
    if date_to < date_from:
        raise ValueError(f"date_to {date_to.isoformat()} is before date_from {date_from.isoformat()}")

    headers = repo.records.list_records(date_from=date_from, date_to=date_to)
    by_day: dict[date, list[PerformanceMetrics]] = defaultdict(list)
    for m in _metrics_for(repo, headers):
        by_day[m.date].append(m)

    out: list[ScoredPerformance] = []
    for day in sorted(by_day, reverse=True):
        out.extend(score_comparison_set(by_day[day]))
    if line_shift:
        wanted = str(line_shift).strip()
        out = [s for s in out if s.metrics.line_shift == wanted]
    return out


def rank_by_score(rows: Iterable[ScoredPerformance]) -> list[ScoredPerformance]:
    """Highest total score first; ties keep line/shift order."""
    return sorted(rows, key=lambda s: (-s.score.total_score, s.metrics.line_shift))


def to_frame(rows: Iterable[ScoredPerformance]) -> pd.DataFrame:
    records = []
    for s in rows:
        row = asdict(s.metrics)
        row.update(asdict(s.score))
        records.append(row)
    if not records:
        return pd.DataFrame(columns=REPORT_COLUMNS)
    return pd.DataFrame.from_records(records)[REPORT_COLUMNS]


def line_shift_averages(rows: Iterable[ScoredPerformance]) -> pd.DataFrame:
    """Mean metrics per line/shift, best average score first.

    Columns: line_shift, days, then the averaged metrics.
    """
    df = to_frame(rows)
    if df.empty:
        return pd.DataFrame(columns=["line_shift", "days", *_AVERAGE_COLUMNS])

    grouped = df.groupby("line_shift", sort=True)
    out = grouped[_AVERAGE_COLUMNS].mean()
    out.insert(0, "days", grouped["date"].nunique())
    out = out.reset_index().sort_values(["total_score", "line_shift"], ascending=[False, True])
    return out.reset_index(drop=True)
