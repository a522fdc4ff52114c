"""
Wire Serialization Utilities

Base model for backend JSON envelopes and helpers for building request
payloads.

The backend uses PascalCase keys, sends ``null`` for unset attributes and
omits empty fields on input; both directions are handled here so that
schemas stay declarative.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator


class WireModel(BaseModel):
    """Base for backend envelopes: aliases, ignored extras, null as default."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


def omit_empty(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is empty, zero or False."""
    return {k: v for k, v in payload.items() if v not in (None, "", 0, False, [], {})}
