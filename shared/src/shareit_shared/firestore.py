"""Firestore serialization helpers.

Handles conversion between Python snake_case and Firestore camelCase.
"""

import re
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)

# Field names whose Firestore spelling doesn't follow the plain camelCase rule.
_CAMEL_OVERRIDES = {"photo_url": "photoURL"}
_SNAKE_OVERRIDES = {camel: snake for snake, camel in _CAMEL_OVERRIDES.items()}

# User-defined blobs; their keys are stored exactly as the client wrote them.
_OPAQUE_KEYS = frozenset({"config", "data"})


class DocumentSnapshot(Protocol):
    @property
    def id(self) -> str: ...

    def to_dict(self) -> dict[str, Any] | None: ...


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase."""
    if string in _CAMEL_OVERRIDES:
        return _CAMEL_OVERRIDES[string]
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


def to_snake(string: str) -> str:
    """Convert camelCase to snake_case."""
    if string in _SNAKE_OVERRIDES:
        return _SNAKE_OVERRIDES[string]
    return re.sub(r"(?<!^)(?=[A-Z])", "_", string).lower()


def model_to_firestore(model: BaseModel, exclude: set[str] | None = None) -> dict[str, Any]:
    """Convert a pydantic model to Firestore document format.

    - Converts field names from snake_case to camelCase
    - Leaves datetimes for the Firestore client to encode
    - Keeps enums as their string values
    """
    data = model.model_dump(mode="python", exclude=exclude)
    return fields_to_firestore(data)


def fields_to_firestore(data: dict[str, Any]) -> dict[str, Any]:
    """Convert a partial snake_case update to camelCase field paths."""
    return _convert_keys(data, to_camel)


def firestore_to_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Convert Firestore document to snake_case dict for pydantic parsing."""
    return _convert_keys(data, to_snake)


def document_to_model(model_cls: type[M], doc: DocumentSnapshot) -> M:
    """Parse a snapshot into `model_cls`, injecting the document id as `id`."""
    data = firestore_to_dict(doc.to_dict() or {})
    if "id" in model_cls.model_fields:
        data["id"] = doc.id
    return model_cls.model_validate(data)


def _convert_keys(data: dict[str, Any], convert) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in data.items():
        new_key = convert(key)
        if key in _OPAQUE_KEYS or new_key in _OPAQUE_KEYS:
            result[new_key] = value
        else:
            result[new_key] = _convert_value(value, convert)
    return result


def _convert_value(value: Any, convert) -> Any:
    if isinstance(value, dict):
        return _convert_keys(value, convert)
    if isinstance(value, list):
        return [_convert_value(item, convert) for item in value]
    return value
