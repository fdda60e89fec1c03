from __future__ import annotations

import copy
import json
from typing import Any, Callable, Dict

import pytest

from premium_estimator.config import DEFAULT_RATES_PATH
from premium_estimator.services.rate_table import RateTable, load_rate_table, parse_rate_table


@pytest.fixture
def rates() -> RateTable:
    return load_rate_table(str(DEFAULT_RATES_PATH))


@pytest.fixture
def raw_rates() -> Dict[str, Any]:
    # fresh copy per test; tests edit it freely
    return copy.deepcopy(json.loads(DEFAULT_RATES_PATH.read_text(encoding="utf-8")))


@pytest.fixture
def make_rates(raw_rates: Dict[str, Any]) -> Callable[..., RateTable]:
    def _make(**overrides: Dict[str, Any]) -> RateTable:
        raw = copy.deepcopy(raw_rates)
        for product, values in overrides.items():
            raw[product].update(values)
        return parse_rate_table(raw)

    return _make
