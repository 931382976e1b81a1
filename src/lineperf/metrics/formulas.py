"""Shift performance formulas.

All functions are pure and never raise on degenerate inputs: a zero
denominator yields 0, never a ZeroDivisionError or NaN.

Total Score = ARS + SRS + PCS + CPHS, nominal maximum 100:
- ARS  Absent Rate Score       (max 30)
- SRS  Separation Rate Score   (max 30)
- PCS  Plan Completion Score   (nominally 20, not clamped)
- CPHS Circuits-per-hour Score (max 20, relative to the best line)
"""

from __future__ import annotations

# Nominal hours worked by a non-overtime operator in one shift.
STANDARD_SHIFT_HOURS = 7.66

ABSENT_RATE_SCORE_MAX = 30.0
SEPARATION_RATE_SCORE_MAX = 30.0
PLAN_COMPLETION_SCORE_MAX = 20.0
THROUGHPUT_SCORE_MAX = 20.0
SCORE_MAX = 100.0

# (minimum percentage of max score, tier)
SCORE_TIERS: tuple[tuple[float, str], ...] = (
    (90.0, "excellent"),
    (80.0, "good"),
    (70.0, "average"),
)

# (minimum plan completion %, status)
STATUS_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (95.0, "normal"),
    (70.0, "degraded"),
)


def used_labor_hours(no_ot_mp: float, ot_mp: float, ot_hours: float) -> float:
    """Man-hours used by a shift.

    Examples:
        >>> round(used_labor_hours(40, 5, 2.0), 2)
        316.4
        >>> used_labor_hours(0, 0, 3.5)
        0.0
    """
    return float(no_ot_mp) * STANDARD_SHIFT_HOURS + float(ot_mp) * float(ot_hours)


def efficiency(output: float, used_hours: float) -> float:
    """Output per used man-hour, as a percentage."""
    if used_hours > 0:
        return (float(output) / float(used_hours)) * 100
    return 0.0


def plan_completion(actual_output: float, plan: float) -> float:
    """Actual output as a percentage of the plan."""
    if plan > 0:
        return (float(actual_output) / float(plan)) * 100
    return 0.0


def throughput_rate(weighted_output: float, used_hours: float) -> float:
    """Circuits per hour (CPH): Σ(output × circuit) / used man-hours."""
    if used_hours > 0:
        return float(weighted_output) / float(used_hours)
    return 0.0


def rate_percent(part: float, total: float) -> float:
    if total > 0:
        return (float(part) / float(total)) * 100
    return 0.0


def effective_manpower(mp: int, absent: int) -> int:
    return int(mp) - int(absent)


def available_manpower(mp: int, absent: int, separated_mp: int) -> int:
    return int(mp) - int(absent) - int(separated_mp)


def manning_rate(mp: int, absent: int, separated_mp: int) -> float:
    """Share of the assigned headcount actually on the line, in percent."""
    return rate_percent(available_manpower(mp, absent, separated_mp), mp)


def absent_rate_score(absent_rate_pct: float) -> float:
    """Absent Rate Score (ARS).

    Up to 5% absence the score degrades gently from 30; above 5% it drops to
    the (0.7 - r) branch. The jump at exactly 5% is intentional.

    Examples:
        >>> absent_rate_score(0)
        30.0
        >>> round(absent_rate_score(6), 2)
        19.2
        >>> absent_rate_score(100)
        0.0
    """
    r = float(absent_rate_pct) / 100
    if r > 0.05:
        return max(0.0, (0.7 - r) * ABSENT_RATE_SCORE_MAX)
    return (1 - r) * ABSENT_RATE_SCORE_MAX


def separation_rate_score(separation_rate_pct: float) -> float:
    """Separation Rate Score (SRS): full 30 points only with zero separations."""
    r = float(separation_rate_pct) / 100
    if r > 0:
        return max(0.0, (0.5 - r) * SEPARATION_RATE_SCORE_MAX)
    return SEPARATION_RATE_SCORE_MAX


def plan_completion_score(plan_completion_pct: float) -> float:
    # Overproduction scores above 20; kept unclamped.
    return (float(plan_completion_pct) / 100) * PLAN_COMPLETION_SCORE_MAX


def throughput_score(current_rate: float, max_observed_rate: float) -> float:
    """CPH Score (CPHS) relative to the best rate of the comparison set."""
    if max_observed_rate > 0:
        return (float(current_rate) / float(max_observed_rate)) * THROUGHPUT_SCORE_MAX
    return 0.0


def composite_score(
    absent_score: float,
    separation_score: float,
    plan_score: float,
    throughput_score_value: float,
) -> float:
    return float(absent_score) + float(separation_score) + float(plan_score) + float(throughput_score_value)


def classify_score(score: float, max_score: float = SCORE_MAX) -> str:
    """Tier label for a score, by percentage of ``max_score``.

    Examples:
        >>> classify_score(92)
        'excellent'
        >>> classify_score(45, max_score=50)
        'excellent'
        >>> classify_score(69.9)
        'poor'
    """
    pct = (float(score) / float(max_score)) * 100 if max_score > 0 else 0.0
    for threshold, tier in SCORE_TIERS:
        if pct >= threshold:
            return tier
    return "poor"


def classify_status(plan_completion_pct: float) -> str:
    """Operational status of a line from its plan completion."""
    for threshold, status in STATUS_THRESHOLDS:
        if plan_completion_pct >= threshold:
            return status
    return "critical"
