from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

CENTS = Decimal("0.01")

BILLING_PERIODS = ("monthly", "annual")


class ProductLine(str, Enum):
    AUTO = "auto"
    HOME = "home"
    LIFE = "life"
    DISABILITY = "disability"
    HEALTH = "health"
    PET = "pet"


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Factor:
    """One ordered step of an estimate.

    ``kind`` tells how ``value`` was applied: ``base`` and ``floor`` are amounts,
    ``multiplier`` scales the running figure, ``discount`` multiplies it by
    ``1 - value``, ``credit`` subtracts an amount and ``surcharge``/``addon`` add one.
    """

    code: str
    value: Decimal
    kind: str = "multiplier"
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "value": str(self.value), "kind": self.kind, "note": self.note}


@dataclass(frozen=True)
class PremiumEstimate:
    product_line: ProductLine
    premium: Decimal
    billing_period: str
    breakdown: List[Factor] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    kind = "premium"

    @property
    def headline(self) -> Decimal:
        return self.premium

    @property
    def multipliers_product(self) -> Decimal:
        product = Decimal("1")
        for f in self.breakdown:
            if f.kind == "multiplier":
                product *= f.value
        return product

    def projections(self) -> Dict[str, Decimal]:
        if self.billing_period == "monthly":
            monthly = self.premium
        else:
            monthly = self.premium / 12
        return {
            "monthly": to_money(monthly),
            "semiannual": to_money(monthly * 6),
            "annual": to_money(monthly * 12),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productLine": self.product_line.value,
            "kind": self.kind,
            "premium": float(self.premium),
            "billingPeriod": self.billing_period,
            "breakdown": [f.to_dict() for f in self.breakdown],
            "multipliersProduct": str(self.multipliers_product),
            "projections": {k: float(v) for k, v in self.projections().items()},
            "details": jsonable(self.details),
        }


@dataclass(frozen=True)
class CoverageRecommendation:
    """Life insurance output: how much cover to buy, not what it costs."""

    product_line: ProductLine
    coverage_needed: Decimal
    components: List[Factor] = field(default_factory=list)

    kind = "coverage"

    @property
    def headline(self) -> Decimal:
        return self.coverage_needed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productLine": self.product_line.value,
            "kind": self.kind,
            "coverageNeeded": float(self.coverage_needed),
            "components": [f.to_dict() for f in self.components],
        }


EstimationResult = Union[PremiumEstimate, CoverageRecommendation]


def jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value


_SYMBOLS = {"USD": "$", "CAD": "CA$", "EUR": "€", "GBP": "£"}


def format_money(value: Decimal, currency: str) -> str:
    symbol = _SYMBOLS.get(currency)
    amount = f"{to_money(Decimal(str(value))):,.2f}"
    return f"{symbol}{amount}" if symbol else f"{amount} {currency}"
