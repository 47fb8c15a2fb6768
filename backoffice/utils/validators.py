# utils/validators.py
from .helpers import to_money


def non_empty(text) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text and str(text).strip())


# ---- Numeric parsing ----

def try_parse_money(x):
    """
    Best-effort parse to a cent-rounded Decimal.

    Returns:
        (ok: bool, value: Decimal|None)
    """
    if x is None:
        return False, None
    try:
        return True, to_money(x)
    except ValueError:
        return False, None
