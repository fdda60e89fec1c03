from __future__ import annotations

from decimal import Decimal

import pytest

from premium_estimator.domain.errors import ValidationError
from premium_estimator.domain.estimates import CoverageRecommendation, PremiumEstimate, ProductLine
from premium_estimator.services.estimators import estimate, home_age_bracket


def _auto(**extra):
    return {
        "driver_age": "adult",
        "driving_record": "clean",
        "coverage_level": "good",
        "deductible": "500",
        **extra,
    }


def _home(**extra):
    return {
        "construction": "frame",
        "age_bracket": "medium",
        "liability": "100000",
        "deductible": "1000",
        **extra,
    }


def _pet(**extra):
    return {
        "breed": "poodle",
        "pet_age": "adult",
        "deductible": "250",
        "reimbursement": "80",
        "annual_limit": "10000",
        **extra,
    }


# ---- auto ----


def test_auto_worked_example(make_rates):
    rates = make_rates(auto={"baseRate": 1000})
    result = estimate("auto", _auto(deductible="750"), rates)
    assert isinstance(result, PremiumEstimate)
    assert result.premium == Decimal("1026.00")
    assert result.billing_period == "monthly"
    assert result.breakdown[0].kind == "base"
    assert result.multipliers_product == Decimal("1.0") * Decimal("0.9") * Decimal("1.2") * Decimal("0.95")


def test_auto_discounts_compound_instead_of_summing(rates):
    plain = estimate("auto", _auto(), rates)
    assert plain.premium == Decimal("129.60")

    both = estimate("auto", _auto(discounts=["bundle", "goodStudent"]), rates)
    # 129.60 x 0.85 x 0.90, not 129.60 x 0.75
    assert both.premium == Decimal("99.14")
    assert both.details["discounts_applied"] == ["bundle", "goodStudent"]
    assert both.details["total_savings_percent"] == Decimal("25.00")


def test_auto_adding_a_discount_never_raises_the_premium(rates):
    base = estimate("auto", _auto(discounts=["antiTheft"]), rates)
    more = estimate("auto", _auto(discounts=["antiTheft", "defensiveDriver"]), rates)
    assert more.premium <= base.premium


@pytest.mark.parametrize(
    "mileage, multiplier",
    [(5000, Decimal("0.9")), (8000, Decimal("1")), (12000, Decimal("1")), (15000, Decimal("1.1"))],
)
def test_auto_mileage_usage_bands(rates, mileage, multiplier):
    result = estimate("auto", _auto(annual_mileage=mileage), rates)
    usage = [f for f in result.breakdown if f.code == "usage"]
    assert usage and usage[0].value == multiplier


def test_auto_unknown_discount_is_rejected(rates):
    with pytest.raises(ValidationError) as ei:
        estimate("auto", _auto(discounts=["loyalCustomer"]), rates)
    assert "discounts" in ei.value.field_errors


def test_auto_unknown_driver_age_names_the_field(rates):
    with pytest.raises(ValidationError) as ei:
        estimate("auto", _auto(driver_age="teen"), rates)
    assert list(ei.value.field_errors) == ["driver_age"]


# ---- home ----


def test_home_credits_are_subtracted_after_multipliers(rates):
    result = estimate("home", _home(protective_features=["burglarAlarm", "smokeDetectors"]), rates)
    assert result.premium == Decimal("1290.00")
    assert result.billing_period == "annual"
    assert result.details["premium_before_credits"] == Decimal("1400.00")
    assert result.details["credits_total"] == Decimal("110.00")
    assert result.details["floor_applied"] is False


def test_home_premium_never_drops_below_the_floor(make_rates, raw_rates):
    credits = dict(raw_rates["home"]["protectiveCredits"], burglarAlarm=5000)
    rates = make_rates(home={"protectiveCredits": credits})
    result = estimate("home", _home(protective_features=["burglarAlarm"]), rates)
    assert result.premium == Decimal("140.00")
    assert result.details["floor_applied"] is True
    assert result.breakdown[-1].kind == "floor"


def test_home_age_in_years_picks_a_bracket(rates):
    answers = _home()
    del answers["age_bracket"]
    answers["home_age_years"] = 5
    result = estimate("home", answers, rates)
    assert result.details["age_bracket"] == "new"
    assert result.premium == Decimal("1260.00")


@pytest.mark.parametrize("years, bracket", [(0, "new"), (9, "new"), (10, "medium"), (39, "medium"), (40, "old")])
def test_home_age_bracket_edges(years, bracket):
    assert home_age_bracket(years) == bracket


def test_home_requires_some_age(rates):
    answers = _home()
    del answers["age_bracket"]
    with pytest.raises(ValidationError) as ei:
        estimate("home", answers, rates)
    assert "age_bracket" in ei.value.field_errors


# ---- life ----


def test_life_worked_example(rates):
    result = estimate(
        "life",
        {
            "annual_income": 80000,
            "outstanding_debt": 20000,
            "dependents": 1,
            "existing_savings": 10000,
        },
        rates,
    )
    assert isinstance(result, CoverageRecommendation)
    assert result.kind == "coverage"
    assert result.coverage_needed == Decimal("850000.00")


def test_life_mortgage_and_other_loans_count_as_debt(rates):
    result = estimate(
        "life",
        {"annual_income": 0, "mortgage": "150,000", "other_loans": 5000, "final_expenses": 0},
        rates,
    )
    assert result.coverage_needed == Decimal("155000.00")


def test_life_coverage_is_never_negative(rates):
    result = estimate("life", {"annual_income": 50000, "existing_savings": 10_000_000}, rates)
    assert result.coverage_needed == Decimal("0.00")


# ---- disability ----


def test_disability_premium_and_benefit(rates):
    result = estimate(
        "disability",
        {"annual_income": 60000, "benefit_period": "5", "waiting_period": "90"},
        rates,
    )
    assert result.details["monthly_benefit"] == Decimal("3000.00")
    assert result.premium == Decimal("60.00")
    assert result.details["cost_band"] == "medium"
    assert "shortfall" not in result.details


@pytest.mark.parametrize(
    "benefit, waiting, band",
    [("2", "180", "low"), ("5", "90", "medium"), ("65", "30", "high")],
)
def test_disability_cost_band(rates, benefit, waiting, band):
    result = estimate(
        "disability",
        {"annual_income": 60000, "benefit_period": benefit, "waiting_period": waiting},
        rates,
    )
    assert result.details["cost_band"] == band


def test_disability_shortfall_against_expenses(rates):
    result = estimate(
        "disability",
        {
            "annual_income": 60000,
            "benefit_period": "5",
            "waiting_period": "90",
            "monthly_expenses": 3500,
        },
        rates,
    )
    assert result.details["shortfall"] == Decimal("500.00")
    assert result.details["surplus"] == Decimal("0.00")


# ---- health ----


def test_health_worked_example(make_rates):
    rates = make_rates(
        health={
            "fpl": {"base": 14000, "perPerson": 5000},
            "subsidy": {"maxContributionPercent": 0.08},
        }
    )
    result = estimate("health", {"household_size": 3, "annual_income": 30000, "plan": "silver"}, rates)
    assert result.details["fpl_threshold"] == Decimal("24000.00")
    assert result.details["subsidy"] == Decimal("0.00")
    assert result.premium == Decimal("450.00")


def test_health_zero_income_is_below_the_subsidy_window(rates):
    result = estimate("health", {"household_size": 1, "annual_income": 0, "plan": "gold"}, rates)
    assert result.premium == Decimal("560.00")
    assert result.details["subsidy"] == Decimal("0.00")
    assert result.details["subsidy_eligible"] is False
    assert result.details["income_to_threshold_ratio"] == Decimal("0.0000")


@pytest.mark.parametrize(
    "income, eligible, premium",
    [
        (10000, False, Decimal("560.00")),  # below 100% of the threshold
        (14580, True, Decimal("145.80")),  # exactly 100%
        (20000, True, Decimal("200.00")),
        (72900, False, Decimal("560.00")),  # exactly 500%
        (80000, False, Decimal("560.00")),
    ],
)
def test_health_subsidy_only_inside_the_income_window(make_rates, income, eligible, premium):
    rates = make_rates(health={"subsidy": {"maxContributionPercent": 0.01}})
    result = estimate("health", {"household_size": 1, "annual_income": income, "plan": "gold"}, rates)
    assert result.details["subsidy_eligible"] is eligible
    assert result.premium == premium
    assert result.premium >= 0


def test_health_subsidy_window_is_configurable(make_rates):
    rates = make_rates(
        health={"subsidy": {"maxContributionPercent": 0.01, "minIncomeRatio": 0, "maxIncomeRatio": 10}}
    )
    result = estimate("health", {"household_size": 1, "annual_income": 0, "plan": "gold"}, rates)
    assert result.details["subsidy_eligible"] is True
    assert result.premium == Decimal("0.00")


def test_health_hsa_savings_only_for_hsa_plans(rates):
    bronze = estimate("health", {"household_size": 2, "annual_income": 90000, "plan": "bronze"}, rates)
    gold = estimate("health", {"household_size": 2, "annual_income": 90000, "plan": "gold"}, rates)
    assert bronze.details["hsa_tax_savings"] == Decimal("1540.00")
    assert gold.details["hsa_tax_savings"] == Decimal("0.00")


def test_health_household_must_have_someone(rates):
    with pytest.raises(ValidationError) as ei:
        estimate("health", {"household_size": 0, "annual_income": 30000, "plan": "silver"}, rates)
    assert "household_size" in ei.value.field_errors


# ---- pet ----


def test_pet_known_breed(rates):
    result = estimate("pet", _pet(), rates)
    assert result.premium == Decimal("36.10")
    assert result.details["breed_recognized"] is True


def test_pet_unknown_breed_is_priced_at_average_risk(rates):
    result = estimate("pet", _pet(breed="Mystery Mutt"), rates)
    assert result.premium == Decimal("38.00")
    assert result.details["breed_recognized"] is False
    assert result.details["known_issues"] == []


def test_pet_breed_matches_display_name_and_adds_issue_costs(rates):
    result = estimate("pet", _pet(breed="  labrador retriever "), rates)
    assert result.details["breed"] == "Labrador Retriever"
    assert result.details["known_issues"] == ["Hip dysplasia"]
    assert result.premium == Decimal("44.80")


def test_pet_wellness_plan_is_added(rates):
    without = estimate("pet", _pet(), rates)
    with_plan = estimate("pet", _pet(wellness_plan=True), rates)
    assert with_plan.premium - without.premium == Decimal("15.00")


# ---- all products ----


@pytest.mark.parametrize(
    "product, answers",
    [
        ("auto", _auto(discounts=["bundle", "goodStudent", "antiTheft", "defensiveDriver"])),
        ("home", _home(protective_features=["burglarAlarm", "sprinklerSystem"])),
        ("life", {"annual_income": 0, "final_expenses": 0, "existing_savings": 500000}),
        ("disability", {"annual_income": 0, "benefit_period": "2", "waiting_period": "180"}),
        ("health", {"household_size": 6, "annual_income": 0, "plan": "bronze"}),
        ("pet", _pet(breed="Jackalope")),
    ],
)
def test_results_are_non_negative(rates, product, answers):
    result = estimate(product, answers, rates)
    assert result.headline >= 0


def test_same_input_same_result(rates):
    first = estimate(ProductLine.AUTO, _auto(discounts=["bundle"]), rates)
    second = estimate(ProductLine.AUTO, _auto(discounts=["bundle"]), rates)
    assert first == second
    assert first.to_dict() == second.to_dict()


def test_unknown_product_line(rates):
    with pytest.raises(ValidationError) as ei:
        estimate("boat", {}, rates)
    assert "product_line" in ei.value.field_errors


def test_negative_money_is_rejected(rates):
    with pytest.raises(ValidationError) as ei:
        estimate("life", {"annual_income": -1}, rates)
    assert ei.value.field_errors["annual_income"] == "Must not be negative."


@pytest.mark.parametrize("value", ["1e27", 1e300, 10**12 + 1])
def test_huge_money_is_rejected_not_crashing(rates, value):
    with pytest.raises(ValidationError) as ei:
        estimate("life", {"annual_income": value}, rates)
    assert ei.value.field_errors["annual_income"] == "Must be at most 1,000,000,000,000."


def test_largest_accepted_inputs_still_estimate(rates):
    life = estimate(
        "life",
        {"annual_income": 10**12, "income_replacement_years": 100, "dependents": 50},
        rates,
    )
    assert life.coverage_needed > 0
    health = estimate("health", {"household_size": 50, "annual_income": 10**12, "plan": "gold"}, rates)
    assert health.premium == Decimal("560.00")
    auto = estimate("auto", _auto(annual_mileage=1_000_000), rates)
    assert auto.premium > 0
