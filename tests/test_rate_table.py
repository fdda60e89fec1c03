from __future__ import annotations

from decimal import Decimal

import pytest

from premium_estimator.domain.errors import ConfigurationError
from premium_estimator.domain.estimates import ProductLine
from premium_estimator.services.rate_table import load_rate_table, parse_rate_table


def test_bundled_table_loads(rates):
    assert rates.version
    assert rates.currency == "USD"
    assert rates.auto.base_rate > 0
    assert rates.billing_period(ProductLine.HOME) == "annual"
    assert rates.billing_period(ProductLine.LIFE) is None
    assert rates.average_rate(ProductLine.LIFE) is None


def test_multiplier_maps_are_read_only(rates):
    with pytest.raises(TypeError):
        rates.auto.age_multiplier["young"] = Decimal("0.1")  # type: ignore[index]


def _rejected(raw) -> ConfigurationError:
    with pytest.raises(ConfigurationError) as ei:
        parse_rate_table(raw)
    return ei.value


def test_missing_product_section(raw_rates):
    del raw_rates["pet"]
    assert _rejected(raw_rates).key == "pet"


def test_missing_base_rate(raw_rates):
    del raw_rates["auto"]["baseRate"]
    err = _rejected(raw_rates)
    assert err.key == "auto.baseRate"
    assert str(err) == "auto.baseRate: missing"


def test_multiplier_map_must_cover_every_category(raw_rates):
    del raw_rates["auto"]["ageMultiplier"]["senior"]
    assert _rejected(raw_rates).key == "auto.ageMultiplier.senior"


def test_multipliers_must_be_positive(raw_rates):
    raw_rates["home"]["deductibleMultiplier"]["500"] = 0
    assert _rejected(raw_rates).key == "home.deductibleMultiplier.500"


@pytest.mark.parametrize("value", [1, 1.5, -0.1])
def test_discounts_must_be_fractions_below_one(raw_rates, value):
    raw_rates["auto"]["discounts"]["bundle"] = value
    assert _rejected(raw_rates).key == "auto.discounts.bundle"


def test_billing_period_is_checked(raw_rates):
    raw_rates["pet"]["billingPeriod"] = "weekly"
    assert _rejected(raw_rates).key == "pet.billingPeriod"


def test_numbers_must_be_numbers(raw_rates):
    raw_rates["life"]["incomeReplacementYears"] = "ten"
    assert _rejected(raw_rates).key == "life.incomeReplacementYears"


def test_health_plan_needs_an_hsa_flag(raw_rates):
    del raw_rates["health"]["plans"]["gold"]["isHSA"]
    assert _rejected(raw_rates).key == "health.plans.gold.isHSA"


def test_mileage_thresholds_must_be_ordered(raw_rates):
    raw_rates["auto"]["mileageThresholds"] = {"low": 15000, "high": 12000}
    assert _rejected(raw_rates).key == "auto.mileageThresholds.high"


def test_breed_issue_needs_a_name(raw_rates):
    raw_rates["pet"]["breeds"]["poodle"]["issues"] = [{"cost": 2}]
    assert _rejected(raw_rates).key == "pet.breeds.poodle.issues[0].name"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError) as ei:
        load_rate_table(str(tmp_path / "nope.json"))
    assert "not found" in ei.value.message


def test_broken_json(tmp_path):
    path = tmp_path / "rates.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError) as ei:
        load_rate_table(str(path))
    assert "invalid JSON" in ei.value.message


def test_subsidy_window_defaults(rates):
    assert rates.health.min_income_ratio == Decimal("1")
    assert rates.health.max_income_ratio == Decimal("5")


def test_subsidy_window_must_be_ordered(raw_rates):
    raw_rates["health"]["subsidy"]["minIncomeRatio"] = 4
    raw_rates["health"]["subsidy"]["maxIncomeRatio"] = 4
    assert _rejected(raw_rates).key == "health.subsidy.maxIncomeRatio"
