from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping

from premium_estimator.domain.errors import ValidationError
from premium_estimator.domain.estimates import ProductLine

logger = logging.getLogger(__name__)

_TRUE = {"true", "on", "yes", "1"}
_FALSE = {"false", "off", "no", "0", ""}


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("Expected a whole number.")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip() != "":
        try:
            return int(value.strip())
        except ValueError:
            raise ValueError("Expected a whole number.") from None
    raise ValueError("Expected a whole number.")


def _as_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("Expected a number.")
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float, str)):
        try:
            number = Decimal(str(value).strip().replace(",", ""))
        except InvalidOperation:
            raise ValueError("Expected a number.") from None
    else:
        raise ValueError("Expected a number.")
    if not number.is_finite():
        raise ValueError("Expected a finite number.")
    return number


def _as_str(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, int) and not isinstance(value, bool):
        # tier keys such as deductibles may arrive as numbers
        return str(value)
    raise ValueError("Expected text.")


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [_as_str(v) for v in value]
    if isinstance(value, str):
        # single selection might arrive as string
        return [value.strip()]
    raise ValueError("Expected a list of choices.")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
        return value.strip().lower() in _TRUE
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValueError("Expected true or false.")


def _choices_hint(options: List[Dict[str, str]]) -> str:
    return ", ".join(o["id"] for o in options)


def _check_min(value: Any, constraints: Mapping[str, Any]) -> None:
    minimum = constraints.get("min", 0)
    if value < minimum:
        if minimum == 0:
            raise ValueError("Must not be negative.")
        raise ValueError(f"Must be at least {minimum}.")
    if "max" in constraints and value > constraints["max"]:
        raise ValueError(f"Must be at most {constraints['max']:,}.")


def _home_age_given(normalized: Dict[str, Any], field_errors: Dict[str, str]) -> None:
    if "age_bracket" in normalized or "home_age_years" in normalized:
        return
    if "age_bracket" not in field_errors and "home_age_years" not in field_errors:
        field_errors["age_bracket"] = "Choose an age bracket or enter the home's age in years."


_CROSS_CHECKS: Dict[ProductLine, Callable[[Dict[str, Any], Dict[str, str]], None]] = {
    ProductLine.HOME: _home_age_given,
}


def validate_input(
    product_line: ProductLine,
    fields: List[Dict[str, Any]],
    answers: Mapping[str, Any],
) -> Dict[str, Any]:
    """
    Strict input validation:
    - unknown fields -> error
    - required fields -> error if missing
    - data_type, min constraints, option membership
    - returns normalized input (types cleaned, defaults filled)
    Every problem is collected before a single ValidationError is raised.
    """
    field_defs = {f["field_id"]: f for f in fields}
    field_errors: Dict[str, str] = {}
    normalized: Dict[str, Any] = {}

    for fid in answers.keys():
        if fid not in field_defs:
            field_errors[fid] = "Unknown field."

    for fid, f in field_defs.items():
        val = answers.get(fid)
        provided = val is not None and val != "" and val != []
        if not provided:
            if f.get("required"):
                field_errors[fid] = "This field is required."
            elif f.get("default") is not None:
                default = f["default"]
                normalized[fid] = list(default) if isinstance(default, list) else default
            continue

        try:
            dt = f.get("data_type")
            constraints = f.get("constraints") or {}
            if dt == "int":
                v_int = _as_int(val)
                _check_min(v_int, constraints)
                normalized[fid] = v_int

            elif dt == "decimal":
                v_dec = _as_decimal(val)
                _check_min(v_dec, constraints)
                normalized[fid] = v_dec

            elif dt == "bool":
                normalized[fid] = _as_bool(val)

            elif dt == "string":
                v_str = _as_str(val)
                max_length = constraints.get("max_length")
                if max_length is not None and len(v_str) > max_length:
                    raise ValueError(f"Must be at most {max_length} characters.")
                options = f.get("options") or []
                if options and not f.get("free_text"):
                    if v_str not in {o["id"] for o in options}:
                        raise ValueError(f"Choose one of: {_choices_hint(options)}.")
                normalized[fid] = v_str

            elif dt == "string[]":
                # normalize unique while preserving order
                seen = set()
                uniq: List[str] = []
                for x in _as_str_list(val):
                    if x not in seen:
                        seen.add(x)
                        uniq.append(x)
                allowed = {o["id"] for o in f.get("options") or []}
                bad = [x for x in uniq if x not in allowed]
                if bad:
                    raise ValueError("Not recognised: " + ", ".join(bad) + ".")
                normalized[fid] = uniq

            else:
                raise ValueError(f"Unsupported data_type: {dt}")

        except ValueError as e:
            field_errors[fid] = str(e)

    check = _CROSS_CHECKS.get(product_line)
    if check is not None:
        check(normalized, field_errors)

    if field_errors:
        logger.debug("Rejected %s input: %s", product_line.value, field_errors)
        raise ValidationError(
            title="Validation failed",
            detail="Some answers need attention. Fix them and try again.",
            field_errors=field_errors,
        )

    return normalized


def resolve_product_line(value: Any) -> ProductLine:
    try:
        return ProductLine(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            title="Validation failed",
            detail="Unknown product line.",
            field_errors={
                "product_line": "Choose one of: " + ", ".join(p.value for p in ProductLine) + "."
            },
        ) from None
