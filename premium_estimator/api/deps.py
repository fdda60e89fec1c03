from __future__ import annotations

from typing import Any, Dict, List

from fastapi import Request

from premium_estimator.config import Settings
from premium_estimator.domain.estimates import EstimationResult
from premium_estimator.services.history import prune_selection, record_result, summarize
from premium_estimator.services.rate_table import RateTable


def get_rates(request: Request) -> RateTable:
    return request.app.state.rates


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def req_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


# ---- session helpers (cookie-signed, so keep it small!) ----


def _session(request: Request) -> Dict[str, Any]:
    return request.session  # type: ignore[attr-defined]


def get_history(request: Request) -> List[Dict[str, Any]]:
    return list(_session(request).get("results") or [])


def get_selection(request: Request) -> List[int]:
    return list(_session(request).get("compare") or [])


def set_selection(request: Request, selection: List[int]) -> None:
    _session(request)["compare"] = selection


def clear_history(request: Request) -> None:
    _session(request).pop("results", None)
    _session(request).pop("compare", None)


def remember_result(
    request: Request,
    result: EstimationResult,
    answers: Dict[str, Any],
    fields: List[Dict[str, Any]],
) -> Dict[str, Any]:
    settings = get_app_settings(request)
    rates = get_rates(request)
    entry = summarize(result, answers, fields, rates.currency)
    history = record_result(get_history(request), entry, limit=settings.history_limit)
    _session(request)["results"] = history
    set_selection(request, prune_selection(get_selection(request), history))
    return history[0]
