import json
from typing import Any, TypeVar

from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_form(model: type[ModelT], data: dict[str, Any]) -> ModelT:
    """Validates multipart form values against a body schema.

    Failures go through the same 400 ``validation_error`` envelope as JSON bodies.
    """
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc


def parse_json_field(raw: str | None, field_name: str) -> Any:
    if raw is None or not raw.strip():
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RequestValidationError(
            [
                {
                    "loc": ("form", field_name),
                    "msg": f"{field_name} must be valid JSON",
                    "type": "json_invalid",
                }
            ]
        ) from exc


def drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}
