"""
knwire.tier1_runtime.serialize
───────────────────────────────
Stable serialization of engine models for handoff through a single
environment variable. JSON only; models carry their own wire version.

Errors on decode are raised as SerializationError, never as raw Pydantic or
JSON errors.
"""
from __future__ import annotations

import json
from typing import Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from knwire.tier0_core.errors import SerializationError

T = TypeVar("T", bound=BaseModel)


def serialize(obj: BaseModel | dict | list) -> str:
    """
    Serialize a Pydantic model or plain dict/list to a compact JSON string.

    Usage:
        text = serialize(descriptor)    # → '{"version":1,"services":[...]}'
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump_json(by_alias=True)
    try:
        return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise SerializationError(
            user_message="Cannot serialize object.",
            detail=str(exc),
        ) from exc


def deserialize(data: bytes | str, model: Type[T]) -> T:
    """
    Deserialize a JSON string into a Pydantic model.

    Usage:
        descriptor = deserialize(text, EnvironmentDescriptor)
    """
    if isinstance(data, bytes):
        try:
            data = data.decode()
        except UnicodeDecodeError as exc:
            raise SerializationError(
                user_message=f"Malformed {model.__name__} payload.",
                detail=str(exc),
            ) from exc
    try:
        return model.model_validate_json(data)
    except PydanticValidationError as exc:
        raise SerializationError(
            user_message=f"Malformed {model.__name__} payload.",
            detail=str(exc),
        ) from exc
