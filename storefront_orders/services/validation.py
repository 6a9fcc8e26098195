"""
Boundary validation helpers.

Loosely-typed input (form mappings, JSON bodies) is turned into a typed
request model exactly once; failures become a field-keyed error map.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import MalformedPayload, ValidationFailed

ModelT = TypeVar("ModelT", bound=BaseModel)

FieldErrors = Dict[str, List[str]]

# Fields of the admin order form that are copied as-is
ORDER_FORM_FIELDS = (
    "customer_id",
    "customer_name",
    "customer_email",
    "subtotal",
    "tax",
    "shipping",
    "discount",
    "total",
    "payment_method",
    "notes",
    "tracking_number",
    "cancel_reason",
)

# Optional form fields where an empty input means "unset"
BLANK_AS_NONE = ("customer_id", "notes", "tracking_number", "cancel_reason")


@dataclass
class ValidationOutcome(Generic[ModelT]):
    value: Optional[ModelT] = None
    errors: Optional[FieldErrors] = None

    @property
    def ok(self) -> bool:
        return self.errors is None


def format_validation_errors(exc: ValidationError) -> FieldErrors:
    """Group pydantic errors by top-level field; model-level errors go under ``general``."""
    errors: FieldErrors = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        field = str(loc[0]) if loc else "general"
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, []).append(message)
    return errors


def validate_payload(model: Type[ModelT], data: Any) -> ValidationOutcome[ModelT]:
    """Validate ``data`` against ``model`` without raising for bad input."""
    if isinstance(data, model):
        return ValidationOutcome(value=data)
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return ValidationOutcome(value=model.model_validate(data))
    except ValidationError as exc:
        return ValidationOutcome(errors=format_validation_errors(exc))


def require_valid(model: Type[ModelT], data: Any) -> ModelT:
    outcome = validate_payload(model, data)
    if not outcome.ok:
        raise ValidationFailed(errors=outcome.errors)
    return outcome.value


def decode_json_field(form: Mapping[str, Any], field: str, default: Any = None) -> Any:
    """
    Read a form field that may carry JSON text.

    Structured values pass through untouched; strings are decoded. Undecodable
    text raises ``MalformedPayload``.
    """
    value = form.get(field)
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise MalformedPayload(field, exc.msg) from exc


def parse_order_form(form: Mapping[str, Any], existing: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Build the admin order update payload from a loosely-typed form.

    ``status`` and ``payment_status`` fall back to the stored order's values.
    """
    data: Dict[str, Any] = {field: form[field] for field in ORDER_FORM_FIELDS if field in form}

    for field in BLANK_AS_NONE:
        if isinstance(data.get(field), str) and not data[field].strip():
            data[field] = None

    data["items"] = decode_json_field(form, "items", default=[])
    data["shipping_address"] = decode_json_field(form, "shipping_address")

    for field in ("status", "payment_status"):
        value = form.get(field) or existing.get(field)
        data[field] = value.strip().upper() if isinstance(value, str) else value

    return data
