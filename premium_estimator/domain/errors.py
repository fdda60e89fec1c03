from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class ValidationError(Exception):
    title: str
    detail: str
    field_errors: Dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        if not self.field_errors:
            return self.detail
        fields = "; ".join(f"{k}: {v}" for k, v in self.field_errors.items())
        return f"{self.detail} ({fields})"

    def to_dict(self, request_id: str | None) -> Dict[str, Any]:
        return {
            "title": self.title,
            "detail": self.detail,
            "fieldErrors": self.field_errors,
            "requestId": request_id,
        }


@dataclass(frozen=True)
class ConfigurationError(Exception):
    """The rate table is missing a key or holds a value it must not."""

    key: str
    message: str

    def __str__(self) -> str:
        return f"{self.key}: {self.message}"

    def to_dict(self, request_id: str | None) -> Dict[str, Any]:
        return {
            "title": "Configuration error",
            "detail": "The rate table is misconfigured. Estimates are unavailable.",
            "requestId": request_id,
        }
