"""
Recent estimates for one visitor.

Entries are plain JSON-able dicts so they can live in the signed session cookie:
newest first, at most ``limit`` of them, and a comparison selection of at most
``compare_limit`` timestamps.
"""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from premium_estimator.domain.estimates import EstimationResult, PremiumEstimate, format_money
from premium_estimator.services.inventory import humanize, option_label

_PERIOD_SUFFIX = {"monthly": "/month", "annual": "/year"}

_MONEY_KINDS = {"base", "credit", "surcharge", "addon", "floor"}

# entries ride in a signed cookie, so keep them short
SUMMARY_INPUTS = 4


def headline(result: EstimationResult, currency: str) -> str:
    text = format_money(result.headline, currency)
    if isinstance(result, PremiumEstimate):
        return text + _PERIOD_SUFFIX.get(result.billing_period, "")
    return text


def display_value(field: Mapping[str, Any], value: Any, currency: str) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, list):
        return ", ".join(option_label(field, v) for v in value) or "None"
    if field.get("unit") == "money" and isinstance(value, Decimal):
        return format_money(value, currency)
    if field.get("options"):
        return option_label(field, value)
    return str(value)


def format_factor(kind: str, value: Decimal, currency: str) -> str:
    if kind in _MONEY_KINDS:
        return format_money(value, currency)
    if kind == "discount":
        return f"-{(value * 100).normalize():f}%"
    return f"x{value}"


def factor_label(code: str) -> str:
    """``breed_issue:Hip dysplasia`` -> ``Breed issue: Hip dysplasia``."""
    name, _, qualifier = code.partition(":")
    label = humanize(name)
    return f"{label}: {qualifier}" if qualifier else label


def summarize(
    result: EstimationResult,
    answers: Mapping[str, Any],
    fields: List[Dict[str, Any]],
    currency: str,
    *,
    timestamp: Optional[int] = None,
) -> Dict[str, Any]:
    inputs = [
        {"label": f["label"], "value": display_value(f, answers[f["field_id"]], currency)}
        for f in fields
        if f["field_id"] in answers
    ][:SUMMARY_INPUTS]
    return {
        "productLine": result.product_line.value,
        "kind": result.kind,
        "headline": headline(result, currency),
        "value": float(result.headline),
        "inputs": inputs,
        "timestamp": timestamp if timestamp is not None else int(time.time() * 1000),
    }


def record_result(
    history: List[Dict[str, Any]], entry: Dict[str, Any], limit: int = 10
) -> List[Dict[str, Any]]:
    """Put ``entry`` first and keep the newest ``limit`` entries."""
    if history and entry["timestamp"] <= history[0]["timestamp"]:
        # timestamps identify entries; keep them strictly increasing
        entry = {**entry, "timestamp": history[0]["timestamp"] + 1}
    return [entry, *history][:limit]


def prune_selection(selection: List[int], history: List[Dict[str, Any]]) -> List[int]:
    known = {e["timestamp"] for e in history}
    return [ts for ts in selection if ts in known]


def toggle_compare(selection: List[int], timestamp: int, limit: int = 3) -> List[int]:
    """Add or remove ``timestamp``; adding past ``limit`` leaves the selection as is."""
    if timestamp in selection:
        return [ts for ts in selection if ts != timestamp]
    if len(selection) >= limit:
        return list(selection)
    return [*selection, timestamp]


def compared(history: List[Dict[str, Any]], selection: List[int]) -> List[Dict[str, Any]]:
    by_ts = {e["timestamp"]: e for e in history}
    return [by_ts[ts] for ts in selection if ts in by_ts]
