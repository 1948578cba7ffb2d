"""
knwire.tier1_runtime.validate
──────────────────────────────
Input validation via Pydantic v2. Raises knwire ValidationError (not raw
Pydantic errors) so callers always see the same error shape.
"""
from __future__ import annotations

from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

T = TypeVar("T", bound=BaseModel)


def validate_input(model: Type[T], data: Any) -> T:
    """
    Validate raw data against a Pydantic model.
    Raises knwire ValidationError (not Pydantic's) on failure.

    Usage:
        config = validate_input(KnativeTraitConfig, {"channel-sources": "a,b"})
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        from knwire.tier0_core.errors import ValidationError

        fields = {
            ".".join(str(loc) for loc in err["loc"]): err["msg"]
            for err in exc.errors()
        }
        raise ValidationError(
            code="validation_error",
            user_message=f"Invalid {model.__name__}.",
            fields=fields,
        ) from exc
