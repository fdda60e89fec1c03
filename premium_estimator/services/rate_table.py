from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from premium_estimator.domain.errors import ConfigurationError
from premium_estimator.domain.estimates import BILLING_PERIODS, ProductLine

logger = logging.getLogger(__name__)

DRIVER_AGES = ("young", "adult", "senior")
DRIVING_RECORDS = ("clean", "tickets", "accident")
COVERAGE_LEVELS = ("minimum", "good", "best")
USAGE_LEVELS = ("low", "average", "high")
HOME_AGE_BRACKETS = ("new", "medium", "old")
PET_AGES = ("young", "adult", "senior")

# Subsidy window as income / FPL threshold: from 100% up to, not including, 500%
SUBSIDY_MIN_INCOME_RATIO = Decimal("1")
SUBSIDY_MAX_INCOME_RATIO = Decimal("5")

FactorMap = Mapping[str, Decimal]


@dataclass(frozen=True)
class AutoRates:
    base_rate: Decimal
    billing_period: str
    average_rate: Optional[Decimal]
    age_multiplier: FactorMap
    record_multiplier: FactorMap
    coverage_multiplier: FactorMap
    deductible_multiplier: FactorMap
    discounts: FactorMap
    usage_multiplier: FactorMap
    mileage_low: Decimal
    mileage_high: Decimal


@dataclass(frozen=True)
class HomeRates:
    base_rate: Decimal
    billing_period: str
    average_rate: Optional[Decimal]
    construction_multiplier: FactorMap
    age_multiplier: FactorMap
    protective_credits: FactorMap
    liability_multiplier: FactorMap
    deductible_multiplier: FactorMap


@dataclass(frozen=True)
class LifeRates:
    income_replacement_years: Decimal
    default_final_expenses: Decimal
    default_college_fund: Decimal


@dataclass(frozen=True)
class DisabilityRates:
    income_replacement_percentage: Decimal
    premium_rate: Decimal
    billing_period: str
    average_rate: Optional[Decimal]
    benefit_period_multiplier: FactorMap
    waiting_period_multiplier: FactorMap


@dataclass(frozen=True)
class HealthPlan:
    premium: Decimal
    deductible: Decimal
    oop_max: Decimal
    is_hsa: bool


@dataclass(frozen=True)
class HealthRates:
    billing_period: str
    average_rate: Optional[Decimal]
    fpl_base: Decimal
    fpl_per_person: Decimal
    plans: Mapping[str, HealthPlan]
    max_contribution_percent: Decimal
    min_income_ratio: Decimal
    max_income_ratio: Decimal
    hsa_tax_rate: Decimal


@dataclass(frozen=True)
class BreedIssue:
    name: str
    cost: Decimal


@dataclass(frozen=True)
class PetBreed:
    key: str
    name: str
    risk: Decimal
    issues: Tuple[BreedIssue, ...] = ()


@dataclass(frozen=True)
class PetRates:
    base_rate: Decimal
    billing_period: str
    average_rate: Optional[Decimal]
    age_multiplier: FactorMap
    deductible_multiplier: FactorMap
    reimbursement_multiplier: FactorMap
    limit_multiplier: FactorMap
    wellness_plan_cost: Decimal
    breeds: Mapping[str, PetBreed]

    def find_breed(self, name: str) -> Optional[PetBreed]:
        """Look a breed up by key or display name, ignoring case and surrounding blanks."""
        wanted = name.strip().casefold()
        for breed in self.breeds.values():
            if breed.key.casefold() == wanted or breed.name.casefold() == wanted:
                return breed
        return None


@dataclass(frozen=True)
class RateTable:
    version: str
    currency: str
    auto: AutoRates
    home: HomeRates
    life: LifeRates
    disability: DisabilityRates
    health: HealthRates
    pet: PetRates
    raw: Mapping[str, Any]

    def for_product(self, product_line: ProductLine) -> Any:
        return getattr(self, product_line.value)

    def billing_period(self, product_line: ProductLine) -> Optional[str]:
        return getattr(self.for_product(product_line), "billing_period", None)

    def average_rate(self, product_line: ProductLine) -> Optional[Decimal]:
        return getattr(self.for_product(product_line), "average_rate", None)


# ---- shape checks ----


def _number(value: Any, path: str) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ConfigurationError(path, "expected a number")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ConfigurationError(path, "expected a number") from None
    if not number.is_finite():
        raise ConfigurationError(path, "must be a finite number")
    return number


class _Section:
    """Dotted-path reader over one object of the raw rate table."""

    def __init__(self, raw: Any, path: str):
        if not isinstance(raw, Mapping):
            raise ConfigurationError(path, "expected an object")
        self.raw = raw
        self.path = path

    def key(self, name: str) -> str:
        return f"{self.path}.{name}" if self.path else name

    def get(self, name: str) -> Any:
        if name not in self.raw:
            raise ConfigurationError(self.key(name), "missing")
        return self.raw[name]

    def section(self, name: str) -> "_Section":
        return _Section(self.get(name), self.key(name))

    def text(self, name: str) -> str:
        value = self.get(name)
        if not isinstance(value, str) or not value.strip():
            raise ConfigurationError(self.key(name), "expected a non-empty string")
        return value

    def number(self, name: str) -> Decimal:
        return _number(self.get(name), self.key(name))

    def positive(self, name: str) -> Decimal:
        value = self.number(name)
        if value <= 0:
            raise ConfigurationError(self.key(name), "must be greater than 0")
        return value

    def non_negative(self, name: str) -> Decimal:
        value = self.number(name)
        if value < 0:
            raise ConfigurationError(self.key(name), "must not be negative")
        return value

    def fraction(self, name: str, *, allow_zero: bool = True, allow_one: bool = True) -> Decimal:
        value = self.number(name)
        low_ok = value >= 0 if allow_zero else value > 0
        high_ok = value <= 1 if allow_one else value < 1
        if not (low_ok and high_ok):
            lo = "[0" if allow_zero else "(0"
            hi = "1]" if allow_one else "1)"
            raise ConfigurationError(self.key(name), f"must be in {lo}, {hi}")
        return value

    def optional_positive(self, name: str) -> Optional[Decimal]:
        if self.raw.get(name) is None:
            return None
        return self.positive(name)

    def billing_period(self) -> str:
        value = self.get("billingPeriod")
        if value not in BILLING_PERIODS:
            raise ConfigurationError(
                self.key("billingPeriod"), f"must be one of {', '.join(BILLING_PERIODS)}"
            )
        return value

    def factors(self, name: str, *, covers: Iterable[str] = ()) -> FactorMap:
        table = self.section(name)
        if not table.raw:
            raise ConfigurationError(table.path, "must not be empty")
        out: Dict[str, Decimal] = {str(k): table.positive(str(k)) for k in table.raw}
        for category in covers:
            if category not in out:
                raise ConfigurationError(table.key(category), "missing")
        return MappingProxyType(out)

    def amounts(self, name: str) -> FactorMap:
        table = self.section(name)
        return MappingProxyType({str(k): table.non_negative(str(k)) for k in table.raw})

    def fractions(self, name: str) -> FactorMap:
        table = self.section(name)
        return MappingProxyType(
            {str(k): table.fraction(str(k), allow_one=False) for k in table.raw}
        )


def _auto(s: _Section) -> AutoRates:
    thresholds = s.section("mileageThresholds")
    mileage_low = thresholds.non_negative("low")
    mileage_high = thresholds.non_negative("high")
    if mileage_high < mileage_low:
        raise ConfigurationError(thresholds.key("high"), "must not be below mileageThresholds.low")
    return AutoRates(
        base_rate=s.positive("baseRate"),
        billing_period=s.billing_period(),
        average_rate=s.optional_positive("averageRate"),
        age_multiplier=s.factors("ageMultiplier", covers=DRIVER_AGES),
        record_multiplier=s.factors("recordMultiplier", covers=DRIVING_RECORDS),
        coverage_multiplier=s.factors("coverageMultiplier", covers=COVERAGE_LEVELS),
        deductible_multiplier=s.factors("deductibleMultiplier"),
        discounts=s.fractions("discounts"),
        usage_multiplier=s.factors("usageMultiplier", covers=USAGE_LEVELS),
        mileage_low=mileage_low,
        mileage_high=mileage_high,
    )


def _home(s: _Section) -> HomeRates:
    return HomeRates(
        base_rate=s.positive("baseRate"),
        billing_period=s.billing_period(),
        average_rate=s.optional_positive("averageRate"),
        construction_multiplier=s.factors("constructionMultiplier"),
        age_multiplier=s.factors("ageMultiplier", covers=HOME_AGE_BRACKETS),
        protective_credits=s.amounts("protectiveCredits"),
        liability_multiplier=s.factors("liabilityMultiplier"),
        deductible_multiplier=s.factors("deductibleMultiplier"),
    )


def _life(s: _Section) -> LifeRates:
    return LifeRates(
        income_replacement_years=s.positive("incomeReplacementYears"),
        default_final_expenses=s.non_negative("defaultFinalExpenses"),
        default_college_fund=s.non_negative("defaultCollegeFund"),
    )


def _disability(s: _Section) -> DisabilityRates:
    return DisabilityRates(
        income_replacement_percentage=s.fraction("incomeReplacementPercentage", allow_zero=False),
        premium_rate=s.positive("premiumRate"),
        billing_period=s.billing_period(),
        average_rate=s.optional_positive("averageRate"),
        benefit_period_multiplier=s.factors("benefitPeriodMultiplier"),
        waiting_period_multiplier=s.factors("waitingPeriodMultiplier"),
    )


def _health(s: _Section) -> HealthRates:
    fpl = s.section("fpl")
    subsidy = s.section("subsidy")
    min_ratio = (
        subsidy.non_negative("minIncomeRatio")
        if "minIncomeRatio" in subsidy.raw
        else SUBSIDY_MIN_INCOME_RATIO
    )
    max_ratio = (
        subsidy.positive("maxIncomeRatio")
        if "maxIncomeRatio" in subsidy.raw
        else SUBSIDY_MAX_INCOME_RATIO
    )
    if max_ratio <= min_ratio:
        raise ConfigurationError(subsidy.key("maxIncomeRatio"), "must be above minIncomeRatio")
    plans_section = s.section("plans")
    if not plans_section.raw:
        raise ConfigurationError(plans_section.path, "must not be empty")
    plans: Dict[str, HealthPlan] = {}
    for tier in plans_section.raw:
        p = plans_section.section(str(tier))
        is_hsa = p.get("isHSA")
        if not isinstance(is_hsa, bool):
            raise ConfigurationError(p.key("isHSA"), "expected true or false")
        plans[str(tier)] = HealthPlan(
            premium=p.non_negative("premium"),
            deductible=p.non_negative("deductible"),
            oop_max=p.non_negative("oopMax"),
            is_hsa=is_hsa,
        )
    return HealthRates(
        billing_period=s.billing_period(),
        average_rate=s.optional_positive("averageRate"),
        fpl_base=fpl.positive("base"),
        fpl_per_person=fpl.non_negative("perPerson"),
        plans=MappingProxyType(plans),
        max_contribution_percent=subsidy.fraction("maxContributionPercent"),
        min_income_ratio=min_ratio,
        max_income_ratio=max_ratio,
        hsa_tax_rate=s.section("hsa").fraction("assumedTaxRate"),
    )


def _pet(s: _Section) -> PetRates:
    breeds_section = s.section("breeds")
    breeds: Dict[str, PetBreed] = {}
    for key in breeds_section.raw:
        b = breeds_section.section(str(key))
        issues = b.raw.get("issues") or []
        if not isinstance(issues, list):
            raise ConfigurationError(b.key("issues"), "expected a list")
        parsed = []
        for i, issue in enumerate(issues):
            item = _Section(issue, b.key(f"issues[{i}]"))
            parsed.append(BreedIssue(name=item.text("name"), cost=item.non_negative("cost")))
        breeds[str(key)] = PetBreed(
            key=str(key), name=b.text("name"), risk=b.positive("risk"), issues=tuple(parsed)
        )
    return PetRates(
        base_rate=s.positive("baseRate"),
        billing_period=s.billing_period(),
        average_rate=s.optional_positive("averageRate"),
        age_multiplier=s.factors("ageMultiplier", covers=PET_AGES),
        deductible_multiplier=s.factors("deductibleMultiplier"),
        reimbursement_multiplier=s.factors("reimbursementMultiplier"),
        limit_multiplier=s.factors("limitMultiplier"),
        wellness_plan_cost=s.non_negative("wellnessPlanCost"),
        breeds=MappingProxyType(breeds),
    )


def parse_rate_table(raw: Mapping[str, Any]) -> RateTable:
    """Check the whole rate table shape and build the typed, read-only view of it.

    Every gap or out-of-range value raises ConfigurationError naming its dotted key,
    so a broken table fails at startup rather than on the first estimate that hits it.
    """
    root = _Section(raw, "")
    meta = root.section("meta")
    return RateTable(
        version=meta.text("version"),
        currency=meta.text("currency"),
        auto=_auto(root.section(ProductLine.AUTO.value)),
        home=_home(root.section(ProductLine.HOME.value)),
        life=_life(root.section(ProductLine.LIFE.value)),
        disability=_disability(root.section(ProductLine.DISABILITY.value)),
        health=_health(root.section(ProductLine.HEALTH.value)),
        pet=_pet(root.section(ProductLine.PET.value)),
        raw=MappingProxyType(dict(raw)),
    )


@lru_cache(maxsize=4)
def load_rate_table(path: str) -> RateTable:
    rates_path = Path(path)
    try:
        raw = json.loads(rates_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(str(rates_path), "rate table file not found") from None
    except json.JSONDecodeError as e:
        raise ConfigurationError(str(rates_path), f"invalid JSON: {e.msg}") from e
    table = parse_rate_table(raw)
    logger.info("Loaded rate table %s (%s) from %s", table.version, table.currency, rates_path)
    return table
