from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date


@dataclass(frozen=True)
class Product:
    id: int
    product_code: str
    circuit: float
    mhr: float
    qty_sh_pack: int = 0


@dataclass(frozen=True)
class LineItem:
    """One (product, quantity) pair of an assembly or packing collection."""
    product_id: int
    quantity: int


@dataclass(frozen=True)
class DailyPerformance:
    date: date
    line_shift: str
    leader: str
    mp: int
    absent: int
    separated_mp: int
    plan: int
    no_ot_mp: int
    ot_mp: int
    ot_hours: float = 0.0
    assy_wt: float = 0.0
    qc: int = 0

    # Storage info (None until persisted)
    id: int | None = None
    total_assy_output: int | None = None

    @property
    def headcount_consistent(self) -> bool:
        # Expected on well-formed entries, never enforced by storage.
        return self.absent + self.separated_mp <= self.mp


@dataclass(frozen=True)
class PerformanceRecord:
    header: DailyPerformance
    assy_lines: tuple[LineItem, ...] = field(default_factory=tuple)
    packing_lines: tuple[LineItem, ...] = field(default_factory=tuple)


@dataclass
class AuditEntry:
    id: int
    timestamp: str
    category: str
    message: str
    details: str | None = None
