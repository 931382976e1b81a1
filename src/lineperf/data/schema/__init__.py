from __future__ import annotations

from lineperf.data.schema.performance_schema import ensure_schema as ensure_performance_schema

__all__ = ["ensure_performance_schema"]
