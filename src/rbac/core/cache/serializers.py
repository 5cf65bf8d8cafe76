"""JSON codec for cached role lookups.

Cached values are a role, a list of roles, or ``None``. Models are stored
as their JSON dump and come back as plain dicts; the caller validates
them into the model it expects.
"""

import json
from typing import Any

from pydantic import BaseModel


def _encode_model(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    raise TypeError(f"{type(obj).__name__} values are not cacheable")


def serialize(value: Any) -> str:
    """Serialize a value for caching.

    Raises:
        TypeError: If the value holds something other than models and JSON types
    """
    return json.dumps(value, default=_encode_model)


def deserialize(data: str) -> Any:
    return json.loads(data)
