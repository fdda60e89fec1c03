from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from starlette.templating import Jinja2Templates

from premium_estimator.api.deps import (
    clear_history,
    get_app_settings,
    get_history,
    get_rates,
    get_selection,
    remember_result,
    set_selection,
)
from premium_estimator.config import PACKAGE_DIR
from premium_estimator.domain.errors import ValidationError
from premium_estimator.domain.estimates import (
    EstimationResult,
    PremiumEstimate,
    ProductLine,
    format_money,
)
from premium_estimator.services.benchmark import compare_to_average
from premium_estimator.services.estimators import validate_and_estimate
from premium_estimator.services.history import (
    compared,
    display_value,
    factor_label,
    format_factor,
    headline,
    toggle_compare,
)
from premium_estimator.services.inventory import PRODUCT_TITLES, humanize, input_fields
from premium_estimator.services.pdf import build_estimate_pdf
from premium_estimator.services.rate_table import RateTable

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(PACKAGE_DIR / "templates"))
templates.env.filters["humanize"] = humanize

router = APIRouter(prefix="/ui", tags=["ui"])


def _product_or_none(value: str) -> Optional[ProductLine]:
    try:
        return ProductLine(value)
    except ValueError:
        return None


def _parse_form_for_fields(form: Any, fields: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Raw form values keyed by field id; validation does the type work."""
    out: Dict[str, Any] = {}
    for f in fields:
        fid = f["field_id"]
        dt = f.get("data_type")
        if dt == "string[]":
            out[fid] = [v for v in form.getlist(fid) if v]
            continue
        if dt == "bool":
            # unchecked boxes are simply absent from the form
            out[fid] = fid in form
            continue

        v = form.get(fid)
        if v is None or v == "":
            continue
        out[fid] = v
    return out


def _view_fields(
    fields: List[Dict[str, Any]], answers: Dict[str, Any]
) -> List[Dict[str, Any]]:
    view_fields = []
    for f in fields:
        fid = f["field_id"]
        value = answers.get(fid, f.get("default"))
        view_fields.append(
            {
                "field": f,
                "field_id": fid,
                "label": f.get("label") or fid,
                "data_type": f.get("data_type"),
                "required": bool(f.get("required")),
                "constraints": f.get("constraints") or {},
                "options": f.get("options") or [],
                "free_text": bool(f.get("free_text")),
                "help": f.get("help"),
                "value": "" if value is None else value,
            }
        )
    return view_fields


def _result_view(
    result: EstimationResult,
    answers: Dict[str, Any],
    fields: List[Dict[str, Any]],
    rates: RateTable,
) -> Dict[str, Any]:
    currency = rates.currency
    steps = result.breakdown if isinstance(result, PremiumEstimate) else result.components
    view: Dict[str, Any] = {
        "kind": result.kind,
        "headline": headline(result, currency),
        "rows": [
            {
                "label": factor_label(f.code),
                "value": format_factor(f.kind, f.value, currency),
                "kind": f.kind,
                "note": f.note,
            }
            for f in steps
        ],
        "inputs": [
            {"label": f["label"], "value": display_value(f, answers[f["field_id"]], currency)}
            for f in fields
            if f["field_id"] in answers
        ],
        "projections": None,
        "details": {},
        "benchmark": compare_to_average(result, rates),
    }
    if isinstance(result, PremiumEstimate):
        view["projections"] = {
            k: format_money(v, currency) for k, v in result.projections().items()
        }
        view["details"] = result.details
        if view["benchmark"]:
            view["benchmark"]["averageText"] = format_money(view["benchmark"]["average"], currency)
    return view


def _render_calculator(
    request: Request,
    *,
    product: ProductLine,
    fields: List[Dict[str, Any]],
    answers: Dict[str, Any],
    errors: Optional[Dict[str, str]] = None,
    result: Optional[Dict[str, Any]] = None,
    status_code: int = 200,
) -> HTMLResponse:
    view_fields = _view_fields(fields, answers)

    # Error summary
    summary = []
    if errors:
        known = {vf["field_id"] for vf in view_fields}
        for fid, msg in errors.items():
            summary.append({"field_id": fid if fid in known else None, "message": msg})

    return templates.TemplateResponse(
        request,
        "calculator.html",
        {
            "title": PRODUCT_TITLES[product],
            "product": product.value,
            "fields": view_fields,
            "errors": errors or {},
            "summary": summary,
            "result": result,
            "rates_version": get_rates(request).version,
        },
        status_code=status_code,
    )


# ---- index ----


@router.get("/")
def ui_root(request: Request) -> HTMLResponse:
    rates = get_rates(request)
    products = [
        {"id": p.value, "title": PRODUCT_TITLES[p], "billing_period": rates.billing_period(p)}
        for p in ProductLine
    ]
    return templates.TemplateResponse(
        request,
        "index.html",
        {"title": "Insurance premium estimator", "products": products, "history": get_history(request)[:3]},
    )


# ---- history ----


@router.get("/results")
def ui_results(request: Request) -> HTMLResponse:
    history = get_history(request)
    selection = get_selection(request)
    return templates.TemplateResponse(
        request,
        "results.html",
        {
            "title": "Recent estimates",
            "history": history,
            "selection": selection,
            "compared": compared(history, selection),
            "compare_limit": get_app_settings(request).compare_limit,
            "titles": {p.value: PRODUCT_TITLES[p] for p in ProductLine},
        },
    )


@router.post("/results/clear")
def ui_results_clear(request: Request) -> RedirectResponse:
    clear_history(request)
    return RedirectResponse(url="/ui/results", status_code=303)


@router.post("/results/{timestamp}/compare")
def ui_results_compare(timestamp: int, request: Request) -> RedirectResponse:
    if timestamp in {e["timestamp"] for e in get_history(request)}:
        limit = get_app_settings(request).compare_limit
        set_selection(request, toggle_compare(get_selection(request), timestamp, limit=limit))
    return RedirectResponse(url="/ui/results", status_code=303)


# ---- calculators ----


@router.get("/{product_line}")
def calculator(product_line: str, request: Request) -> Response:
    product = _product_or_none(product_line)
    if product is None:
        return RedirectResponse(url="/ui/", status_code=302)
    fields = input_fields(product, get_rates(request))
    return _render_calculator(request, product=product, fields=fields, answers={})


@router.post("/{product_line}")
async def calculator_post(product_line: str, request: Request) -> Response:
    product = _product_or_none(product_line)
    if product is None:
        return RedirectResponse(url="/ui/", status_code=303)

    rates = get_rates(request)
    fields = input_fields(product, rates)
    form = await request.form()
    answers = _parse_form_for_fields(form, fields)

    try:
        validated, result = validate_and_estimate(product, answers, rates)
    except ValidationError as e:
        return _render_calculator(
            request,
            product=product,
            fields=fields,
            answers=answers,
            errors=e.field_errors,
            status_code=400,
        )

    remember_result(request, result, validated, fields)
    logger.info("Estimated %s from the form", product.value)
    return _render_calculator(
        request,
        product=product,
        fields=fields,
        answers=answers,
        result=_result_view(result, validated, fields, rates),
    )


@router.post("/{product_line}/pdf")
async def calculator_pdf(product_line: str, request: Request) -> Response:
    product = _product_or_none(product_line)
    if product is None:
        return RedirectResponse(url="/ui/", status_code=303)

    rates = get_rates(request)
    fields = input_fields(product, rates)
    form = await request.form()
    answers = _parse_form_for_fields(form, fields)

    try:
        validated, result = validate_and_estimate(product, answers, rates)
    except ValidationError as e:
        return _render_calculator(
            request,
            product=product,
            fields=fields,
            answers=answers,
            errors=e.field_errors,
            status_code=400,
        )

    issued_at = datetime.now(timezone.utc).replace(microsecond=0).isoformat()
    pdf_bytes = build_estimate_pdf(
        result,
        validated,
        fields,
        currency=rates.currency,
        rates_version=rates.version,
        issued_at_utc=issued_at,
    )
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{product.value}-estimate.pdf"'},
    )
