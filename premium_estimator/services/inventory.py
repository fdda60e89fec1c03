from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from premium_estimator.domain.estimates import ProductLine
from premium_estimator.services.rate_table import (
    COVERAGE_LEVELS,
    DRIVER_AGES,
    DRIVING_RECORDS,
    HOME_AGE_BRACKETS,
    PET_AGES,
    RateTable,
)

PRODUCT_TITLES = {
    ProductLine.AUTO: "Auto insurance",
    ProductLine.HOME: "Home insurance",
    ProductLine.LIFE: "Life insurance",
    ProductLine.DISABILITY: "Disability insurance",
    ProductLine.HEALTH: "Health insurance",
    ProductLine.PET: "Pet insurance",
}

# Upper bounds keep every figure well inside Decimal cent precision
MAX_AMOUNT = 10**12
MAX_COUNT = 50
MAX_TEXT = 60

_FIXED_LABELS = {
    "driver_age": {"young": "Under 25", "adult": "25 to 64", "senior": "65 and over"},
    "driving_record": {
        "clean": "Clean record",
        "tickets": "Speeding tickets",
        "accident": "At-fault accident",
    },
    "coverage_level": {
        "minimum": "State minimum",
        "good": "Good (recommended)",
        "best": "Best protection",
    },
    "age_bracket": {"new": "Under 10 years", "medium": "10 to 39 years", "old": "40 years or more"},
    "pet_age": {"young": "Under 1 year", "adult": "1 to 7 years", "senior": "8 years or more"},
}


def humanize(key: str) -> str:
    """``goodStudent`` -> ``Good student``."""
    words = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", key).replace("_", " ").split()
    if not words:
        return key
    text = " ".join(w.lower() for w in words)
    return text[0].upper() + text[1:]


def _money_label(key: str) -> str:
    try:
        return f"${int(key):,}"
    except ValueError:
        return humanize(key)


def _percent(value: Decimal) -> str:
    return f"{(value * 100).normalize():f}%"


def _options(
    keys: Iterable[str], label: Optional[Callable[[str], str]] = None
) -> List[Dict[str, str]]:
    fmt = label or humanize
    return [{"id": k, "label": fmt(k)} for k in keys]


def _fixed_options(field_id: str, keys: Iterable[str]) -> List[Dict[str, str]]:
    labels = _FIXED_LABELS[field_id]
    return [{"id": k, "label": labels.get(k, humanize(k))} for k in keys]


def _field(
    field_id: str,
    label: str,
    data_type: str,
    *,
    required: bool = True,
    options: Optional[List[Dict[str, str]]] = None,
    free_text: bool = False,
    constraints: Optional[Mapping[str, Any]] = None,
    default: Any = None,
    help: Optional[str] = None,
    unit: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "field_id": field_id,
        "label": label,
        "data_type": data_type,
        "required": required,
        "options": options or [],
        "free_text": free_text,
        "constraints": dict(constraints or {}),
        "default": default,
        "help": help,
        "unit": unit,
    }


def _money(field_id: str, label: str, **kwargs: Any) -> Dict[str, Any]:
    kwargs.setdefault("constraints", {"min": 0, "max": MAX_AMOUNT})
    return _field(field_id, label, "decimal", unit="money", **kwargs)


def _auto_fields(rates: RateTable) -> List[Dict[str, Any]]:
    auto = rates.auto
    return [
        _field("driver_age", "Driver age", "string", options=_fixed_options("driver_age", DRIVER_AGES)),
        _field(
            "driving_record",
            "Driving record",
            "string",
            options=_fixed_options("driving_record", DRIVING_RECORDS),
        ),
        _field(
            "coverage_level",
            "Coverage level",
            "string",
            options=_fixed_options("coverage_level", COVERAGE_LEVELS),
        ),
        _field(
            "deductible",
            "Deductible",
            "string",
            options=_options(auto.deductible_multiplier, _money_label),
            help="A higher deductible lowers the premium.",
        ),
        _field(
            "discounts",
            "Discounts",
            "string[]",
            required=False,
            default=[],
            options=[
                {"id": k, "label": f"{humanize(k)} ({_percent(v)} off)"}
                for k, v in auto.discounts.items()
            ],
        ),
        _field(
            "annual_mileage",
            "Annual mileage",
            "int",
            required=False,
            constraints={"min": 0, "max": 1_000_000},
            help=f"Below {auto.mileage_low:,} miles lowers the rate; above {auto.mileage_high:,} raises it.",
        ),
    ]


def _home_fields(rates: RateTable) -> List[Dict[str, Any]]:
    home = rates.home
    return [
        _field("construction", "Construction type", "string", options=_options(home.construction_multiplier)),
        _field(
            "age_bracket",
            "Home age",
            "string",
            required=False,
            options=_fixed_options("age_bracket", HOME_AGE_BRACKETS),
            help="Pick a bracket or enter the age in years.",
        ),
        _field(
            "home_age_years",
            "Home age in years",
            "int",
            required=False,
            constraints={"min": 0, "max": 1000},
        ),
        _field(
            "protective_features",
            "Protective features",
            "string[]",
            required=False,
            default=[],
            options=[
                {"id": k, "label": f"{humanize(k)} (${v:,.0f} credit)"}
                for k, v in home.protective_credits.items()
            ],
        ),
        _field(
            "liability",
            "Liability coverage",
            "string",
            options=_options(home.liability_multiplier, _money_label),
        ),
        _field(
            "deductible",
            "Deductible",
            "string",
            options=_options(home.deductible_multiplier, _money_label),
        ),
    ]


def _life_fields(rates: RateTable) -> List[Dict[str, Any]]:
    life = rates.life
    zero = Decimal("0")
    return [
        _money("annual_income", "Annual income"),
        _field(
            "income_replacement_years",
            "Years of income to replace",
            "decimal",
            required=False,
            constraints={"min": 0, "max": 100},
            default=life.income_replacement_years,
        ),
        _money("outstanding_debt", "Outstanding debt", required=False, default=zero),
        _money("mortgage", "Mortgage balance", required=False, default=zero),
        _money("other_loans", "Other loans", required=False, default=zero),
        _field(
            "dependents",
            "Children needing college funding",
            "int",
            required=False,
            default=0,
            constraints={"min": 0, "max": MAX_COUNT},
        ),
        _money(
            "college_fund_per_child",
            "College fund per child",
            required=False,
            default=life.default_college_fund,
        ),
        _money(
            "final_expenses",
            "Final expenses",
            required=False,
            default=life.default_final_expenses,
        ),
        _money(
            "existing_savings",
            "Existing savings and life cover",
            required=False,
            default=zero,
        ),
    ]


def _benefit_period_label(key: str) -> str:
    if key.isdigit() and int(key) >= 60:
        return f"To age {key}"
    return f"{key} years" if key.isdigit() else humanize(key)


def _disability_fields(rates: RateTable) -> List[Dict[str, Any]]:
    dis = rates.disability
    return [
        _money("annual_income", "Annual income"),
        _field(
            "benefit_period",
            "Benefit period",
            "string",
            options=_options(dis.benefit_period_multiplier, _benefit_period_label),
        ),
        _field(
            "waiting_period",
            "Waiting period",
            "string",
            options=_options(
                dis.waiting_period_multiplier, lambda k: f"{k} days" if k.isdigit() else humanize(k)
            ),
            help="A longer waiting period lowers the premium.",
        ),
        _money(
            "monthly_expenses",
            "Core monthly expenses",
            required=False,
            help="Used to show a shortfall or surplus against the benefit.",
        ),
    ]


def _health_fields(rates: RateTable) -> List[Dict[str, Any]]:
    health = rates.health
    return [
        _field("household_size", "Household size", "int", constraints={"min": 1, "max": MAX_COUNT}),
        _money("annual_income", "Annual household income"),
        _field(
            "plan",
            "Plan tier",
            "string",
            options=[
                {"id": k, "label": f"{humanize(k)}{' (HSA eligible)' if p.is_hsa else ''}"}
                for k, p in health.plans.items()
            ],
        ),
    ]


def _pet_fields(rates: RateTable) -> List[Dict[str, Any]]:
    pet = rates.pet
    return [
        _field(
            "breed",
            "Breed",
            "string",
            free_text=True,
            constraints={"max_length": MAX_TEXT},
            options=[{"id": b.key, "label": b.name} for b in pet.breeds.values()],
            help="Breeds we don't list are priced at an average risk.",
        ),
        _field("pet_age", "Pet age", "string", options=_fixed_options("pet_age", PET_AGES)),
        _field(
            "deductible",
            "Annual deductible",
            "string",
            options=_options(pet.deductible_multiplier, _money_label),
        ),
        _field(
            "reimbursement",
            "Reimbursement",
            "string",
            options=_options(pet.reimbursement_multiplier, lambda k: f"{k}%" if k.isdigit() else humanize(k)),
        ),
        _field(
            "annual_limit",
            "Annual limit",
            "string",
            options=_options(pet.limit_multiplier, _money_label),
        ),
        _field(
            "wellness_plan",
            "Add wellness plan",
            "bool",
            required=False,
            default=False,
            help=f"Routine care add-on, ${pet.wellness_plan_cost:,.2f} per month.",
        ),
    ]


_BUILDERS: Dict[ProductLine, Callable[[RateTable], List[Dict[str, Any]]]] = {
    ProductLine.AUTO: _auto_fields,
    ProductLine.HOME: _home_fields,
    ProductLine.LIFE: _life_fields,
    ProductLine.DISABILITY: _disability_fields,
    ProductLine.HEALTH: _health_fields,
    ProductLine.PET: _pet_fields,
}


def input_fields(product_line: ProductLine, rates: RateTable) -> List[Dict[str, Any]]:
    return _BUILDERS[product_line](rates)


def field_by_id(fields: List[Dict[str, Any]], field_id: str) -> Dict[str, Any]:
    for f in fields:
        if f["field_id"] == field_id:
            return f
    raise KeyError(f"Unknown field_id: {field_id}")


def option_label(field: Mapping[str, Any], value: Any) -> str:
    for opt in field.get("options") or []:
        if opt["id"] == value:
            return opt["label"]
    return str(value)


def products_catalog(rates: RateTable) -> List[Dict[str, Any]]:
    out = []
    for product in ProductLine:
        fields = input_fields(product, rates)
        out.append(
            {
                "productLine": product.value,
                "title": PRODUCT_TITLES[product],
                "kind": "coverage" if product is ProductLine.LIFE else "premium",
                "billingPeriod": rates.billing_period(product),
                "fields": [
                    {**f, "default": _plain(f["default"])} for f in fields
                ],
            }
        )
    return out


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value
