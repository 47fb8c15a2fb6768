# utils/helpers.py
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import logging
from typing import Union, Optional

from ..constants import MONEY_PLACES

NumberLike = Union[Decimal, float, int, str]

_log = logging.getLogger(__name__)

CENT = Decimal(1).scaleb(-MONEY_PLACES)
ZERO = Decimal("0.00")


def today_str() -> str:
    """Return today's date as ISO string (YYYY-MM-DD)."""
    return date.today().isoformat()


def now_str() -> str:
    """Return the current local timestamp as ISO string, second precision."""
    return datetime.now().isoformat(timespec="seconds")


def to_money(v: Optional[NumberLike]) -> Decimal:
    """
    Coerce a stored or user-supplied number to a Decimal rounded to cents.

    None becomes 0.00. Floats go through str() so 0.1 stays 0.10 rather than
    picking up binary noise. Raises ValueError on unparseable input.
    """
    if v is None:
        return ZERO
    try:
        d = v if isinstance(v, Decimal) else Decimal(str(v).strip())
    except InvalidOperation as e:
        raise ValueError(f"Could not parse {v!r} as a number.") from e
    if not d.is_finite():
        raise ValueError(f"Could not parse {v!r} as a number.")
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def fmt_money(
    v: NumberLike,
    places: int = MONEY_PLACES,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default (strict=False, sentinel=None), returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError.
    """
    try:
        x = Decimal(str(v))
        if not x.is_finite():
            raise InvalidOperation
    except (InvalidOperation, ValueError) as e:
        _log.debug("fmt_money: failed to parse %r as a number: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"
