from __future__ import annotations

import io
import re
import unicodedata
from datetime import date, datetime

import pandas as pd


def read_excel_bytes(content: bytes) -> pd.DataFrame:
    """Read .xlsx bytes into a DataFrame.

    v1: reads first sheet.
    """
    bio = io.BytesIO(content)
    df = pd.read_excel(bio)
    # normalize column names
    df.columns = [str(c).strip() for c in df.columns]
    return df


def normalize_col_name(name: str) -> str:
    """Normalize spreadsheet column names to an ASCII-ish snake_case token.

    Handles exports with accents, non-breaking spaces, tabs, and punctuation
    ("Qty/Sh Pack" -> "qty_sh_pack").
    """

    s = str(name or "").strip().lower()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    s = s.replace("\u00a0", " ")
    s = re.sub(r"[\s\t]+", " ", s)
    # keep alnum + spaces, turn the rest into spaces
    s = re.sub(r"[^a-z0-9 ]+", " ", s)
    s = re.sub(r"\s+", "_", s).strip("_")
    return s


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [normalize_col_name(c) for c in df.columns]
    return df


def is_blank(value) -> bool:
    """True for None, NaN and whitespace-only strings."""
    if value is None:
        return True
    try:
        if isinstance(value, float) and pd.isna(value):
            return True
    except Exception:
        pass
    return isinstance(value, str) and not value.strip()


_DIGITS_RE = re.compile(r"^\d+$")

# Largest value sqlite stores in an INTEGER column.
SQLITE_INT_MAX = 2**63 - 1


def _check_int_range(v: int, *, field: str) -> int:
    if v < 0:
        raise ValueError(f"{field} cannot be negative")
    if v > SQLITE_INT_MAX:
        raise ValueError(f"{field} is too large: {v}")
    return v


def parse_int_strict(value, *, field: str) -> int:
    """Parse a non-negative integer from form or spreadsheet input.

    Accepts ints, floats like 123.0, and digit-only strings, up to
    ``SQLITE_INT_MAX``. Raises ValueError otherwise.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"{field} is empty" if value is None else f"{field} is invalid: {value!r}")

    if isinstance(value, int):
        return _check_int_range(int(value), field=field)

    if isinstance(value, float):
        if pd.isna(value):
            raise ValueError(f"{field} is empty")
        if float(value).is_integer():
            return _check_int_range(int(value), field=field)
        raise ValueError(f"{field} is invalid (not an integer): {value!r}")

    s = str(value).strip()
    if not s:
        raise ValueError(f"{field} is empty")
    if _DIGITS_RE.match(s):
        return _check_int_range(int(s), field=field)

    raise ValueError(f"{field} is invalid: {value!r}")


def coerce_date(value, *, field: str = "date") -> date:
    """Coerce common form/Excel/Pandas date representations to a date."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        raise ValueError(f"{field} is empty")

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    # pandas Timestamp
    if hasattr(value, "to_pydatetime"):
        return value.to_pydatetime().date()

    s = str(value).strip()
    if not s:
        raise ValueError(f"{field} is empty")
    # Accept YYYY-MM-DD
    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        pass

    # Accept DD-MM-YYYY / DD/MM/YYYY
    for fmt in ("%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue

    raise ValueError(f"{field} is invalid: {value!r}")


def coerce_float(value) -> float | None:
    """Coerce common form/Excel/Pandas numeric representations to float.

    Returns None when value is empty/NaN.
    Accepts numbers and strings (handles ',' as decimal separator).
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, float) and pd.isna(value):
            return None
    except Exception:
        pass

    if isinstance(value, (int, float)):
        return float(value)

    s = str(value).strip()
    if not s or s.lower() == "nan":
        return None

    # Handle 1.234,56 -> 1234.56
    if "," in s and "." in s:
        s = s.replace(".", "").replace(",", ".")
    elif "," in s:
        s = s.replace(",", ".")

    try:
        return float(s)
    except ValueError:
        return None
