"""
Request pricing rules.

Prices are stored as decimal strings (e.g. "45.00"), never as minor units.

Priority system for the price charged to a student:
1. student_price (absolute override) - if set and not "0", use it
2. Calculated price (tutor_price x country multiplier)
3. min_price floor - the calculated price is never below min_price
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

PriceInput = Union[str, int, float, None]

LEBANON_MULTIPLIER = 2
DEFAULT_MULTIPLIER = 3

# Sentinel for "argument not supplied" (distinct from an explicit empty value).
UNSET: Any = object()

# Longest leading decimal literal; trailing text is ignored ("50abc" reads as 50).
_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_leading_number(value: Any) -> Optional[float]:
    """Read the number a price string starts with; None when it does not start with one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        m = _LEADING_NUMBER.match(str(value).strip())
        if not m:
            return None
        num = float(m.group(0))
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def _parse_price(value: PriceInput) -> Optional[float]:
    """Parse a positive price, returning None for empty, zero, negative or malformed input."""
    num = parse_leading_number(value)
    if num is None or num <= 0:
        return None
    return num


def _fmt(value: float) -> str:
    return f"{value:.2f}"


def get_country_multiplier(country: Optional[str]) -> int:
    """Return 2 for Lebanon (case and whitespace insensitive), 3 for everyone else."""
    if not country:
        return DEFAULT_MULTIPLIER
    return LEBANON_MULTIPLIER if str(country).upper().strip() == "LEBANON" else DEFAULT_MULTIPLIER


def is_student_price_override(student_price: PriceInput) -> bool:
    if student_price is None:
        return False
    s = str(student_price)
    return s != "" and s != "0"


def calculate_student_price(
    student_price: PriceInput = None,
    tutor_price: PriceInput = None,
    country: Optional[str] = None,
    min_price: PriceInput = None,
) -> str:
    """
    Calculate the student price following the override > multiplier > floor rules.

    Args:
        student_price: Stored override, wins when it parses to a positive number
        tutor_price: What the tutor receives
        country: Student's country (selects the multiplier)
        min_price: Floor applied to the calculated price

    Returns:
        Price formatted with two decimals, or "0" when nothing valid parses
    """
    override = _parse_price(student_price)
    if override is not None:
        return _fmt(override)

    tutor = _parse_price(tutor_price)
    if tutor is None:
        return "0"

    calculated = tutor * get_country_multiplier(country)
    floor = _parse_price(min_price)
    if floor is not None:
        return _fmt(max(calculated, floor))
    return _fmt(calculated)


def calculate_tutor_offer_price(tutor_price: PriceInput, country: Optional[str] = None) -> str:
    """Student-facing price of a tutor's bid (tutor_price x multiplier)."""
    tutor = _parse_price(tutor_price)
    if tutor is None:
        return "0"
    return _fmt(tutor * get_country_multiplier(country))


@dataclass(frozen=True)
class EffectivePrice:
    price: str
    is_override: bool
    is_calculated: bool

    def to_dict(self) -> dict:
        return {"price": self.price, "isOverride": self.is_override, "isCalculated": self.is_calculated}


def get_effective_student_price(
    student_price: PriceInput = None,
    tutor_price: PriceInput = None,
    country: Optional[str] = None,
    min_price: PriceInput = None,
) -> EffectivePrice:
    if is_student_price_override(student_price):
        # Overrides are shown exactly as stored.
        return EffectivePrice(price=str(student_price), is_override=True, is_calculated=False)
    price = calculate_student_price(
        student_price=student_price,
        tutor_price=tutor_price,
        country=country,
        min_price=min_price,
    )
    return EffectivePrice(price=price, is_override=False, is_calculated=True)


@dataclass(frozen=True)
class ResolvedPrice:
    student_price: str
    offer_price: str
    min_price: Optional[str]
    min_price_changed: bool


def _blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def resolve_effective_price(
    request: Mapping[str, Any],
    tutor_price: PriceInput,
    *,
    student_price: Any = UNSET,
    min_price: Any = UNSET,
) -> ResolvedPrice:
    """
    Resolve the prices written when a tutor is attached to a request.

    Shared by the admin `assign_tutor` action and tutor offer acceptance.

    Args:
        request: Current request document
        tutor_price: Price the tutor receives
        student_price: UNSET keeps the stored override (or calculates when there is none);
            an empty value forces recalculation; anything else is stored as the override
        min_price: UNSET keeps the stored floor; an empty value clears it

    Returns:
        ResolvedPrice with the student price, the student-facing offer price and the floor
    """
    country = request.get("country")

    if min_price is UNSET:
        final_min = request.get("min_price")
        min_changed = False
    else:
        final_min = None if _blank(min_price) else str(min_price).strip()
        min_changed = True

    if student_price is UNSET:
        final_student = calculate_student_price(
            student_price=request.get("student_price"),
            tutor_price=tutor_price,
            country=country,
            min_price=final_min,
        )
    elif _blank(student_price):
        final_student = calculate_student_price(tutor_price=tutor_price, country=country, min_price=final_min)
    else:
        final_student = str(student_price).strip()

    return ResolvedPrice(
        student_price=final_student,
        offer_price=calculate_tutor_offer_price(tutor_price, country),
        min_price=final_min,
        min_price_changed=min_changed,
    )


def price_to_float(value: Any) -> float:
    """Lenient numeric read used by reports; malformed or missing values count as 0."""
    num = parse_leading_number(value)
    return 0.0 if num is None else num
