from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from premium_estimator.api.deps import (
    clear_history,
    get_app_settings,
    get_history,
    get_rates,
    get_selection,
    remember_result,
    req_id,
    set_selection,
)
from premium_estimator.domain.errors import ValidationError
from premium_estimator.domain.estimates import jsonable
from premium_estimator.services.benchmark import compare_to_average
from premium_estimator.services.estimators import validate_and_estimate
from premium_estimator.services.history import compared, headline, toggle_compare
from premium_estimator.services.inventory import input_fields, products_catalog
from premium_estimator.services.pdf import build_estimate_pdf
from premium_estimator.services.rate_table import RateTable
from premium_estimator.services.validation import resolve_product_line

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


def _input_of(payload: Dict[str, Any]) -> Dict[str, Any]:
    answers = payload.get("input")
    if answers is None:
        return {}
    if not isinstance(answers, dict):
        raise ValidationError(
            title="Validation failed",
            detail="The request body must hold an 'input' object.",
            field_errors={"input": "Expected an object."},
        )
    return answers


@router.get("/products")
def get_products(rates: RateTable = Depends(get_rates)) -> Dict[str, Any]:
    return {"version": rates.version, "currency": rates.currency, "products": products_catalog(rates)}


@router.get("/rates")
def get_rate_table(rates: RateTable = Depends(get_rates)) -> Dict[str, Any]:
    return dict(rates.raw)


@router.post("/estimate/{product_line}")
async def post_estimate(
    product_line: str,
    payload: Dict[str, Any],
    request: Request,
    rates: RateTable = Depends(get_rates),
) -> JSONResponse:
    try:
        product = resolve_product_line(product_line)
        fields = input_fields(product, rates)
        validated, result = validate_and_estimate(product, _input_of(payload), rates)
    except ValidationError as e:
        return JSONResponse(status_code=400, content=e.to_dict(req_id(request)))

    entry = remember_result(request, result, validated, fields)
    logger.info("Estimated %s (request %s)", product.value, req_id(request))
    return JSONResponse(
        {
            **result.to_dict(),
            "currency": rates.currency,
            "rateTableVersion": rates.version,
            "headline": headline(result, rates.currency),
            "benchmark": compare_to_average(result, rates),
            "input": jsonable(validated),
            "timestamp": entry["timestamp"],
        }
    )


@router.post("/estimate/{product_line}/pdf")
async def post_estimate_pdf(
    product_line: str,
    payload: Dict[str, Any],
    request: Request,
    rates: RateTable = Depends(get_rates),
) -> Response:
    try:
        product = resolve_product_line(product_line)
        fields = input_fields(product, rates)
        validated, result = validate_and_estimate(product, _input_of(payload), rates)
    except ValidationError as e:
        return JSONResponse(status_code=400, content=e.to_dict(req_id(request)))

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
        headers={"Content-Disposition": f'attachment; filename="{product.value}-estimate.pdf"'},
    )


@router.get("/results")
def get_results(request: Request) -> Dict[str, Any]:
    history = get_history(request)
    return {
        "latest": history[0] if history else None,
        "results": history,
        "compare": get_selection(request),
    }


@router.delete("/results")
def delete_results(request: Request) -> Dict[str, Any]:
    clear_history(request)
    return {"results": [], "compare": []}


@router.post("/results/{timestamp}/compare")
def post_compare(timestamp: int, request: Request) -> JSONResponse:
    history = get_history(request)
    if timestamp not in {e["timestamp"] for e in history}:
        return JSONResponse(
            status_code=404,
            content={
                "title": "Not found",
                "detail": "No saved estimate with that timestamp.",
                "requestId": req_id(request),
            },
        )
    limit = get_app_settings(request).compare_limit
    selection = toggle_compare(get_selection(request), timestamp, limit=limit)
    set_selection(request, selection)
    return JSONResponse({"compare": selection, "limit": limit})


@router.get("/results/compare")
def get_compare(request: Request) -> Dict[str, Any]:
    return {"results": compared(get_history(request), get_selection(request))}
