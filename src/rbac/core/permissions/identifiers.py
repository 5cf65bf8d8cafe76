"""Resource identifier normalization and validation.

Resource IDs are dotted paths derived from URL paths, e.g.
``/api/v1/resource-name`` -> ``.api.v1.resource_name``.
"""

import re

from rbac.core.constants import RESOURCE_ID_PATTERN
from rbac.core.errors import ValidationError


VALID_RESOURCE_ID = re.compile(RESOURCE_ID_PATTERN)

_SEPARATORS = str.maketrans({"/": ".", "-": "_"})


def url_to_resource_id(path: str) -> str:
    """Lower-case a path and turn ``/`` into ``.`` and ``-`` into ``_``.

    Leading and trailing separators are kept, so a rooted path yields a
    leading dot.
    """
    return path.lower().translate(_SEPARATORS)


def join_resource_id(*parts: str) -> str:
    """Join path fragments into one resource ID.

    Each part gets the same substitutions as ``url_to_resource_id`` (case
    is left alone) and loses one leading and one trailing dot before the
    parts are joined with dots.
    """
    output = []
    for part in parts:
        part = part.translate(_SEPARATORS)
        part = part.removeprefix(".").removesuffix(".")
        output.append(part)
    return ".".join(output)


def is_valid_resource_id(resource_id: str) -> bool:
    """Check a lower-cased resource ID against the segment pattern.

    A single leading dot (from a rooted path) is allowed.
    """
    return VALID_RESOURCE_ID.match(resource_id.removeprefix(".")) is not None


def validate_resource_id(resource_id: str) -> str:
    """Lower-case and validate a resource ID.

    Returns:
        The lower-cased ID

    Raises:
        ValidationError: If the ID does not match the segment pattern
    """
    resource_id = resource_id.lower()
    if not is_valid_resource_id(resource_id):
        raise ValidationError(
            f"invalid resource id format({resource_id})",
            errors=[
                {
                    "field": "resource_id",
                    "message": "segments need two or more of a-z 0-9 _ - { }",
                }
            ],
        )
    return resource_id
