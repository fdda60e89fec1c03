from __future__ import annotations

from decimal import Decimal

from premium_estimator.domain.estimates import ProductLine
from premium_estimator.services.benchmark import compare_to_average
from premium_estimator.services.estimators import estimate, validate_and_estimate
from premium_estimator.services.history import (
    compared,
    factor_label,
    format_factor,
    headline,
    prune_selection,
    record_result,
    summarize,
    toggle_compare,
)
from premium_estimator.services.inventory import input_fields

AUTO = {"driver_age": "adult", "driving_record": "clean", "coverage_level": "good", "deductible": "500"}


def _entry(ts):
    return {"productLine": "auto", "kind": "premium", "headline": "$1.00/month", "value": 1.0, "inputs": [], "timestamp": ts}


def test_headline_carries_the_billing_period(rates):
    assert headline(estimate("auto", AUTO, rates), "USD") == "$129.60/month"
    life = estimate("life", {"annual_income": 80000}, rates)
    assert headline(life, "USD") == "$815,000.00"


def test_summary_keeps_a_few_labelled_inputs(rates):
    validated, result = validate_and_estimate(ProductLine.AUTO, AUTO, rates)
    entry = summarize(result, validated, input_fields(ProductLine.AUTO, rates), "USD", timestamp=1000)
    assert entry["productLine"] == "auto"
    assert entry["value"] == 129.6
    assert entry["timestamp"] == 1000
    assert len(entry["inputs"]) == 4
    assert entry["inputs"][0] == {"label": "Driver age", "value": "25 to 64"}
    assert entry["inputs"][3] == {"label": "Deductible", "value": "$500"}


def test_history_is_newest_first_and_bounded():
    history = []
    for ts in range(1, 13):
        history = record_result(history, _entry(ts), limit=10)
    assert len(history) == 10
    assert [e["timestamp"] for e in history[:2]] == [12, 11]
    assert history[-1]["timestamp"] == 3


def test_history_timestamps_stay_unique():
    history = record_result([], _entry(500))
    history = record_result(history, _entry(500))
    assert [e["timestamp"] for e in history] == [501, 500]


def test_compare_selection_is_capped():
    selection = []
    for ts in (1, 2, 3, 4):
        selection = toggle_compare(selection, ts, limit=3)
    assert selection == [1, 2, 3]
    assert toggle_compare(selection, 2, limit=3) == [1, 3]


def test_selection_follows_history():
    history = [_entry(3), _entry(2)]
    assert prune_selection([1, 2, 3], history) == [2, 3]
    assert [e["timestamp"] for e in compared(history, [2, 3])] == [2, 3]


def test_factor_display():
    assert format_factor("discount", Decimal("0.15"), "USD") == "-15%"
    assert format_factor("credit", Decimal("70"), "USD") == "$70.00"
    assert format_factor("multiplier", Decimal("1.2"), "USD") == "x1.2"
    assert factor_label("discount:goodStudent") == "Discount: goodStudent"
    assert factor_label("base_rate") == "Base rate"


def test_benchmark_against_average(rates):
    result = estimate("auto", AUTO, rates)
    bench = compare_to_average(result, rates)
    assert bench["average"] == 150.0
    assert bench["difference"] == -20.4
    assert bench["percentDifference"] == 14
    assert bench["position"] == "below"


def test_no_benchmark_for_coverage(rates):
    assert compare_to_average(estimate("life", {"annual_income": 1}, rates), rates) is None
