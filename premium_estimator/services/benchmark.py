from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

from premium_estimator.domain.estimates import EstimationResult, PremiumEstimate, to_money
from premium_estimator.services.rate_table import RateTable


def compare_to_average(result: EstimationResult, rates: RateTable) -> Optional[Dict[str, Any]]:
    """How a premium estimate sits against the market average for its product line.

    Returns None for coverage recommendations and for products without an average.
    """
    if not isinstance(result, PremiumEstimate):
        return None
    average = rates.average_rate(result.product_line)
    if average is None:
        return None

    difference = result.premium - average
    if difference > 0:
        position = "above"
    elif difference < 0:
        position = "below"
    else:
        position = "equal"
    percent = (abs(difference) / average * 100).quantize(Decimal("1"))

    return {
        "average": float(to_money(average)),
        "estimate": float(result.premium),
        "difference": float(to_money(difference)),
        "percentDifference": int(percent),
        "position": position,
    }
