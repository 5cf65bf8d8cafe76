"""Access bitmask algebra.

Access values are OR-combined integers over READ, WRITE, UPDATE and
DELETE. ``has_access`` tests for ANY overlapping bit, not full coverage:
a grant of READ satisfies a request for READ|WRITE. Callers and tests
rely on that; do not tighten it into a subset check.
"""

from enum import IntFlag

from rbac.core.constants import ACCESS_DELETE, ACCESS_READ, ACCESS_UPDATE, ACCESS_WRITE


class Access(IntFlag):
    """Access bits."""

    READ = ACCESS_READ
    WRITE = ACCESS_WRITE
    UPDATE = ACCESS_UPDATE
    DELETE = ACCESS_DELETE


_METHOD_TO_ACCESS: dict[str, int] = {
    "GET": Access.READ,
    "POST": Access.WRITE,
    "DELETE": Access.DELETE,
    "PATCH": Access.UPDATE,
    "PUT": Access.UPDATE,
}


def combine_access(*access: int) -> int:
    """OR-fold access values. No values combine to 0."""
    output = 0
    for a in access:
        output |= a
    return int(output)


def has_access(required: int, granted: int) -> bool:
    """Return True when ``required`` and ``granted`` share at least one bit.

    >>> has_access(Access.READ, Access.READ | Access.WRITE)
    True
    >>> has_access(Access.UPDATE, Access.READ | Access.WRITE)
    False
    """
    return required & granted > 0


def http_method_to_access_code(*methods: str) -> int:
    """Map HTTP methods to access bits.

    GET -> READ, POST -> WRITE, DELETE -> DELETE, PUT/PATCH -> UPDATE.
    Methods match case-insensitively. Unknown methods contribute nothing.
    """
    output = 0
    for method in methods:
        output |= _METHOD_TO_ACCESS.get(method.upper(), 0)
    return int(output)
