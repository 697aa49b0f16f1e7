"""Weight-based shipping for a whole order.

Each shippable unit weighs ``per_unit_weight_lbs``; the order weight is
rounded up to whole pounds and looked up in a posted flat-rate table. Orders
heavier than the table extrapolate at 60 cents per extra pound, and the final
charge never drops below ``minimum_cents``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal

# Cents by billable pound, index 0 = 1 lb. Literal posted rates, dips at
# 27, 43 and 65 lb included; do not smooth.
USPS_RATE_TABLE_CENTS = (
    885, 995, 1045, 1185, 1340, 1480, 1625, 1770, 1900, 2045,  # 1-10 lb
    2185, 2310, 2445, 2580, 2710, 2860, 2990, 3120, 3255, 3390,  # 11-20 lb
    3510, 3640, 3775, 3905, 4040, 4165, 4115, 4290, 4420, 4545,  # 21-30 lb
    4680, 4805, 4935, 5065, 5190, 5320, 5450, 5575, 5700, 5835,  # 31-40 lb
    5960, 6085, 6040, 6215, 6340, 6470, 6595, 6720, 6850, 6975,  # 41-50 lb
    7100, 7230, 7355, 7480, 7610, 7735, 7860, 7990, 8115, 8240,  # 51-60 lb
    8370, 8495, 8620, 8750, 8700, 8875, 9005, 9130, 9255,  # 61-69 lb
)

EXTRA_POUND_CENTS = 60
DEFAULT_UNIT_WEIGHT_LBS = 1.5
DEFAULT_MINIMUM_CENTS = 1000


@dataclass(frozen=True)
class ShippingQuote:
    shippable_units: int
    weight_lbs: Decimal
    billable_lbs: int
    cents: int


def billable_pounds(weight_lbs: Decimal) -> int:
    return max(1, int(weight_lbs.to_integral_value(rounding=ROUND_CEILING)))


def rate_for_pounds(billable_lbs: int) -> int:
    table_len = len(USPS_RATE_TABLE_CENTS)
    if billable_lbs <= table_len:
        return USPS_RATE_TABLE_CENTS[billable_lbs - 1]
    return USPS_RATE_TABLE_CENTS[-1] + (billable_lbs - table_len) * EXTRA_POUND_CENTS


def quote_shipping(
    shippable_units: int,
    *,
    per_unit_weight_lbs: float = DEFAULT_UNIT_WEIGHT_LBS,
    minimum_cents: int = DEFAULT_MINIMUM_CENTS,
) -> ShippingQuote:
    if shippable_units <= 0:
        return ShippingQuote(shippable_units=0, weight_lbs=Decimal("0"), billable_lbs=0, cents=0)

    # str() keeps 1.5 as exactly 1.5 rather than its binary approximation
    weight = Decimal(str(per_unit_weight_lbs)) * shippable_units
    billable = billable_pounds(weight)
    cents = max(minimum_cents, rate_for_pounds(billable))
    return ShippingQuote(
        shippable_units=shippable_units,
        weight_lbs=weight,
        billable_lbs=billable,
        cents=cents,
    )


def compute_shipping_cents(
    shippable_units: int,
    *,
    per_unit_weight_lbs: float = DEFAULT_UNIT_WEIGHT_LBS,
    minimum_cents: int = DEFAULT_MINIMUM_CENTS,
) -> int:
    return quote_shipping(
        shippable_units,
        per_unit_weight_lbs=per_unit_weight_lbs,
        minimum_cents=minimum_cents,
    ).cents
