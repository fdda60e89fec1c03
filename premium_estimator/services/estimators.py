"""
Premium estimators, one pure function per product line.

Each estimator reads its slice of an already validated RateTable plus normalized
input (see services.validation) and returns a fresh result. Nothing here does I/O
or keeps state between calls.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping

from premium_estimator.domain.estimates import (
    CoverageRecommendation,
    EstimationResult,
    Factor,
    PremiumEstimate,
    ProductLine,
    to_money,
)
from premium_estimator.services.inventory import input_fields
from premium_estimator.services.rate_table import (
    AutoRates,
    DisabilityRates,
    HealthRates,
    HomeRates,
    LifeRates,
    PetRates,
    RateTable,
)
from premium_estimator.services.validation import resolve_product_line, validate_input

ZERO = Decimal("0")
ONE = Decimal("1")

HOME_PREMIUM_FLOOR_RATIO = Decimal("0.1")

# (upper bound in years, bracket); anything older is "old"
HOME_AGE_LIMITS = ((10, "new"), (40, "medium"))

# Disability cost band thresholds on a 100-point premium index
COST_BAND_LOW = Decimal("95")
COST_BAND_MEDIUM = Decimal("105")


def _apply(running: Decimal, factors: List[Factor]) -> Decimal:
    for f in factors:
        if f.kind == "multiplier":
            running *= f.value
        elif f.kind == "discount":
            running *= ONE - f.value
    return running


def estimate_auto(rates: AutoRates, answers: Mapping[str, Any]) -> PremiumEstimate:
    factors: List[Factor] = [
        Factor("age", rates.age_multiplier[answers["driver_age"]], note=answers["driver_age"]),
        Factor(
            "driving_record",
            rates.record_multiplier[answers["driving_record"]],
            note=answers["driving_record"],
        ),
        Factor(
            "coverage",
            rates.coverage_multiplier[answers["coverage_level"]],
            note=answers["coverage_level"],
        ),
        Factor(
            "deductible",
            rates.deductible_multiplier[answers["deductible"]],
            note=answers["deductible"],
        ),
    ]

    mileage = answers.get("annual_mileage")
    if mileage is not None:
        if mileage > rates.mileage_high:
            usage = "high"
        elif mileage < rates.mileage_low:
            usage = "low"
        else:
            usage = "average"
        factors.append(Factor("usage", rates.usage_multiplier[usage], note=f"{mileage} miles"))

    # successive percentage reductions, never summed
    selected = answers.get("discounts") or []
    for name in selected:
        factors.append(Factor(f"discount:{name}", rates.discounts[name], kind="discount"))

    premium = _apply(rates.base_rate, factors)
    total_savings = sum((rates.discounts[n] for n in selected), ZERO) * 100

    return PremiumEstimate(
        product_line=ProductLine.AUTO,
        premium=to_money(premium),
        billing_period=rates.billing_period,
        breakdown=[Factor("base_rate", rates.base_rate, kind="base"), *factors],
        details={
            "discounts_applied": list(selected),
            "total_savings_percent": total_savings,
        },
    )


def home_age_bracket(years: int) -> str:
    for limit, bracket in HOME_AGE_LIMITS:
        if years < limit:
            return bracket
    return "old"


def estimate_home(rates: HomeRates, answers: Mapping[str, Any]) -> PremiumEstimate:
    bracket = answers.get("age_bracket")
    age_note = bracket
    if bracket is None:
        years = answers["home_age_years"]
        bracket = home_age_bracket(years)
        age_note = f"{bracket} ({years} years)"

    factors: List[Factor] = [
        Factor(
            "construction",
            rates.construction_multiplier[answers["construction"]],
            note=answers["construction"],
        ),
        Factor("home_age", rates.age_multiplier[bracket], note=age_note),
        Factor("liability", rates.liability_multiplier[answers["liability"]], note=answers["liability"]),
        Factor(
            "deductible",
            rates.deductible_multiplier[answers["deductible"]],
            note=answers["deductible"],
        ),
    ]
    before_credits = _apply(rates.base_rate, factors)

    credits: List[Factor] = [
        Factor(f"credit:{name}", rates.protective_credits[name], kind="credit")
        for name in answers.get("protective_features") or []
    ]
    credits_total = sum((c.value for c in credits), ZERO)

    floor = rates.base_rate * HOME_PREMIUM_FLOOR_RATIO
    premium = before_credits - credits_total
    floor_applied = premium < floor
    breakdown = [Factor("base_rate", rates.base_rate, kind="base"), *factors, *credits]
    if floor_applied:
        premium = floor
        breakdown.append(Factor("minimum_premium", floor, kind="floor"))

    return PremiumEstimate(
        product_line=ProductLine.HOME,
        premium=to_money(premium),
        billing_period=rates.billing_period,
        breakdown=breakdown,
        details={
            "age_bracket": bracket,
            "premium_before_credits": to_money(before_credits),
            "credits_total": to_money(credits_total),
            "floor_applied": floor_applied,
        },
    )


def estimate_life(rates: LifeRates, answers: Mapping[str, Any]) -> CoverageRecommendation:
    years = answers.get("income_replacement_years", rates.income_replacement_years)
    college_fund = answers.get("college_fund_per_child", rates.default_college_fund)
    final_expenses = answers.get("final_expenses", rates.default_final_expenses)

    income = answers["annual_income"] * years
    debt = (
        answers.get("outstanding_debt", ZERO)
        + answers.get("mortgage", ZERO)
        + answers.get("other_loans", ZERO)
    )
    education = answers.get("dependents", 0) * college_fund
    offset = answers.get("existing_savings", ZERO)

    needed = max(ZERO, income + debt + education + final_expenses - offset)

    return CoverageRecommendation(
        product_line=ProductLine.LIFE,
        coverage_needed=to_money(needed),
        components=[
            Factor("income", income, kind="addon", note=f"{years} years"),
            Factor("debt", debt, kind="addon"),
            Factor("education", education, kind="addon", note=f"{answers.get('dependents', 0)} children"),
            Factor("final_expenses", final_expenses, kind="addon"),
            Factor("offset", offset, kind="credit", note="existing savings and cover"),
        ],
    )


def _cost_band(premium_factor: Decimal) -> str:
    index = premium_factor * 100
    if index < COST_BAND_LOW:
        return "low"
    if index < COST_BAND_MEDIUM:
        return "medium"
    return "high"


def estimate_disability(rates: DisabilityRates, answers: Mapping[str, Any]) -> PremiumEstimate:
    monthly_benefit = answers["annual_income"] / 12 * rates.income_replacement_percentage
    factors = [
        Factor(
            "benefit_period",
            rates.benefit_period_multiplier[answers["benefit_period"]],
            note=answers["benefit_period"],
        ),
        Factor(
            "waiting_period",
            rates.waiting_period_multiplier[answers["waiting_period"]],
            note=answers["waiting_period"],
        ),
        Factor("premium_rate", rates.premium_rate),
    ]
    premium_factor = factors[0].value * factors[1].value
    premium = monthly_benefit * premium_factor * rates.premium_rate

    details: Dict[str, Any] = {
        "monthly_benefit": to_money(monthly_benefit),
        "income_replacement_percentage": rates.income_replacement_percentage,
        "premium_factor": premium_factor,
        "cost_band": _cost_band(premium_factor),
    }
    expenses = answers.get("monthly_expenses")
    if expenses is not None:
        details["monthly_expenses"] = to_money(expenses)
        details["shortfall"] = to_money(max(ZERO, expenses - monthly_benefit))
        details["surplus"] = to_money(max(ZERO, monthly_benefit - expenses))

    return PremiumEstimate(
        product_line=ProductLine.DISABILITY,
        premium=to_money(premium),
        billing_period=rates.billing_period,
        breakdown=[Factor("monthly_benefit", monthly_benefit, kind="base"), *factors],
        details=details,
    )


def estimate_health(rates: HealthRates, answers: Mapping[str, Any]) -> PremiumEstimate:
    plan = rates.plans[answers["plan"]]
    household = answers["household_size"]
    income = answers["annual_income"]

    threshold = rates.fpl_base + rates.fpl_per_person * (household - 1)
    ratio = income / threshold

    contribution = income * rates.max_contribution_percent
    eligible = rates.min_income_ratio <= ratio < rates.max_income_ratio
    if eligible:
        subsidy = min(plan.premium, max(ZERO, plan.premium - contribution))
    else:
        subsidy = ZERO
    net = max(ZERO, plan.premium - subsidy)
    hsa_savings = plan.deductible * rates.hsa_tax_rate if plan.is_hsa else ZERO

    breakdown = [
        Factor("plan_premium", plan.premium, kind="base", note=answers["plan"]),
        Factor("subsidy", subsidy, kind="credit"),
    ]
    return PremiumEstimate(
        product_line=ProductLine.HEALTH,
        premium=to_money(net),
        billing_period=rates.billing_period,
        breakdown=breakdown,
        details={
            "gross_premium": to_money(plan.premium),
            "subsidy": to_money(subsidy),
            "net_premium": to_money(net),
            "fpl_threshold": to_money(threshold),
            "income_to_threshold_ratio": ratio.quantize(Decimal("0.0001")),
            "subsidy_eligible": eligible,
            "expected_contribution": to_money(contribution),
            "deductible": to_money(plan.deductible),
            "out_of_pocket_max": to_money(plan.oop_max),
            "is_hsa": plan.is_hsa,
            "hsa_tax_savings": to_money(hsa_savings),
        },
    )


def estimate_pet(rates: PetRates, answers: Mapping[str, Any]) -> PremiumEstimate:
    breed = rates.find_breed(answers["breed"])
    risk = breed.risk if breed is not None else ONE
    factors = [
        Factor("breed", risk, note=breed.name if breed is not None else "average risk"),
        Factor("pet_age", rates.age_multiplier[answers["pet_age"]], note=answers["pet_age"]),
        Factor(
            "deductible",
            rates.deductible_multiplier[answers["deductible"]],
            note=answers["deductible"],
        ),
        Factor(
            "reimbursement",
            rates.reimbursement_multiplier[answers["reimbursement"]],
            note=answers["reimbursement"],
        ),
        Factor(
            "annual_limit",
            rates.limit_multiplier[answers["annual_limit"]],
            note=answers["annual_limit"],
        ),
    ]
    premium = _apply(rates.base_rate, factors)

    extras: List[Factor] = []
    if answers.get("wellness_plan"):
        extras.append(Factor("wellness_plan", rates.wellness_plan_cost, kind="addon"))
    # informational surcharges for conditions the breed is known for
    for issue in breed.issues if breed is not None else ():
        extras.append(Factor("breed_issue", issue.cost, kind="surcharge", note=issue.name))
    premium += sum((e.value for e in extras), ZERO)

    return PremiumEstimate(
        product_line=ProductLine.PET,
        premium=to_money(premium),
        billing_period=rates.billing_period,
        breakdown=[Factor("base_rate", rates.base_rate, kind="base"), *factors, *extras],
        details={
            "breed": breed.name if breed is not None else answers["breed"],
            "breed_recognized": breed is not None,
            "known_issues": [i.name for i in breed.issues] if breed is not None else [],
        },
    )


_ESTIMATORS: Dict[ProductLine, Callable[[Any, Mapping[str, Any]], EstimationResult]] = {
    ProductLine.AUTO: estimate_auto,
    ProductLine.HOME: estimate_home,
    ProductLine.LIFE: estimate_life,
    ProductLine.DISABILITY: estimate_disability,
    ProductLine.HEALTH: estimate_health,
    ProductLine.PET: estimate_pet,
}


def estimate(product_line: Any, answers: Mapping[str, Any], rates: RateTable) -> EstimationResult:
    """Validate ``answers`` for ``product_line`` and run its estimator.

    Raises ValidationError for bad input; the result is either complete or not returned.
    """
    product = product_line if isinstance(product_line, ProductLine) else resolve_product_line(product_line)
    _, result = validate_and_estimate(product, answers, rates)
    return result


def validate_and_estimate(
    product_line: ProductLine, answers: Mapping[str, Any], rates: RateTable
) -> tuple[Dict[str, Any], EstimationResult]:
    """Like ``estimate`` but also hands back the normalized input for display."""
    validated = validate_input(product_line, input_fields(product_line, rates), answers)
    return validated, _ESTIMATORS[product_line](rates.for_product(product_line), validated)
