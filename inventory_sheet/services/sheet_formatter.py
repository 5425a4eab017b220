"""Display values derived from raw inventory record fields.

Every function here is total: malformed or missing input yields the
``NO_RECORD`` placeholder (or a documented passthrough), never an exception.
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from inventory_sheet.models import InventoryRecord

NO_RECORD = "No record"
NO_OBSERVATION = "No observation"

# ── Colors (RGB) ──────────────────────────────────────────────────────────────

SUCCESS = (40, 167, 69)
WARNING = (255, 193, 7)
DANGER = (220, 53, 69)
NEUTRAL = (108, 117, 125)

# ── Condition scale ──────────────────────────────────────────────────────────

_CONDITION_NAMES: dict[int, str] = {
    1: "Poor",
    2: "Fair",
    3: "Fair",
    4: "Good",
    5: "Very good",
}

_CONDITION_COLORS: dict[int, tuple[int, int, int]] = {
    1: DANGER,
    2: WARNING,
    3: WARNING,
    4: SUCCESS,
    5: SUCCESS,
}

# Percentage of the base useful life still expected for each condition
RETENTION_PERCENT: dict[int, int] = {
    1: 30,
    2: 50,
    3: 80,
    4: 90,
    5: 100,
}
DEFAULT_RETENTION_PERCENT = 50

# Amounts of this many integer digits or more are not rendered
_MAX_AMOUNT_DIGITS = 100

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_int(value: object) -> Optional[int]:
    """Lenient integer parse: leading sign and digits, the rest ignored.

    ``"4"`` → 4, ``" 12 days"`` → 12, ``"3650.9"`` → 3650, ``"abc"`` → None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    try:
        return int(match.group(1))
    except ValueError:
        # beyond the interpreter's int conversion limit
        return None


def _parse_amount(value: object) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def format_currency(
    value: object,
    symbol: str = "$",
    thousands_sep: str = ".",
) -> str:
    """Format an amount with no decimals and grouped thousands.

    >>> format_currency(1000000)
    '$ 1.000.000'
    """
    amount = _parse_amount(value)
    if amount is None or amount.adjusted() >= _MAX_AMOUNT_DIGITS:
        return NO_RECORD
    whole = int(amount.to_integral_value(rounding=ROUND_HALF_UP))
    grouped = f"{abs(whole):,}".replace(",", thousands_sep)
    sign = "-" if whole < 0 else ""
    return f"{sign}{symbol} {grouped}"


def condition_label(state: object) -> str:
    """``Good (4/5)`` for ordinals 1-5, ``State <raw>`` for any other value.

    A missing or blank state is not passed through: it yields the
    placeholder, so the cell never reads a bare "State ".
    """
    if state is None or str(state).strip() == "":
        return NO_RECORD
    n = parse_int(state)
    if n in _CONDITION_NAMES:
        return f"{_CONDITION_NAMES[n]} ({n}/5)"
    return f"State {state}"


def condition_color(state: object) -> tuple[int, int, int]:
    return _CONDITION_COLORS.get(parse_int(state), NEUTRAL)


def ownership_label(flag: object) -> str:
    return "Owned" if flag == "1" else "Other"


def estimate_remaining_useful_life(base_days: object, state: object) -> str:
    """Remaining useful life in days from the base figure and the condition.

    A missing or non-positive base yields the placeholder.  An unknown
    condition leaves the base untouched (no retention fraction applied).
    """
    days = parse_int(base_days)
    if days is None or days <= 0:
        return NO_RECORD

    n = parse_int(state)
    if n is None or n < 1 or n > 5:
        return f"{days} days"

    # integer arithmetic, half-up: arbitrarily large bases stay exact
    percent = RETENTION_PERCENT.get(n, DEFAULT_RETENTION_PERCENT)
    return f"{(days * percent + 50) // 100} days"


# ── Field resolution (first non-blank value wins) ───────────────────────────


def first_present(*values: object, default: str = NO_RECORD) -> str:
    for v in values:
        if v is not None and str(v).strip() != "":
            return str(v)
    return default


def resolve_code_or_plate(record: InventoryRecord) -> str:
    """Code, then current plate."""
    return first_present(record.code, record.current_plate)


def resolve_item_name(record: InventoryRecord) -> str:
    return first_present(record.subcategory.name)


def resolve_category_name(record: InventoryRecord) -> str:
    category = record.subcategory.category
    return first_present(category.name if category else None)


def resolve_location_name(record: InventoryRecord) -> str:
    return first_present(record.dependency.name if record.dependency else None)


def resolve_functional_unit_name(record: InventoryRecord) -> str:
    unit = record.functional_unit
    return first_present(unit.name if unit else None)


def resolve_responsible_name(record: InventoryRecord) -> str:
    return first_present(record.responsible.name if record.responsible else None)


def resolve_base_useful_life(record: InventoryRecord) -> Optional[str]:
    """Group's useful life in days, then the record-level useful life."""
    group_days = record.group.useful_life_days if record.group else None
    value = first_present(group_days, record.useful_life, default="")
    return value or None


def resolve_observation(record: InventoryRecord) -> str:
    return first_present(record.observation, default=NO_OBSERVATION)


def resolve_sheet_code(record: InventoryRecord) -> str:
    """Identifier used in file names: code, then record id."""
    return first_present(record.code, record.id, default="unknown")
