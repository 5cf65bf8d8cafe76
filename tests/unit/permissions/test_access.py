"""Unit tests for the access bitmask algebra."""

import pytest

from rbac.core.permissions.access import (
    Access,
    combine_access,
    has_access,
    http_method_to_access_code,
)


pytestmark = pytest.mark.unit


class TestHasAccess:
    """``has_access`` is any-bit overlap, not a subset check."""

    @pytest.mark.parametrize(
        ("required", "granted", "expected"),
        [
            (1, 1, True),
            (2, 2, True),
            (4, 4, True),
            (8, 8, True),
            (1, 2, False),
            (2, 1, False),
            (4, 1, False),
            (8, 1, False),
            (1, 3, True),
            (2, 3, True),
            (4, 3, False),
            (8, 3, False),
            (1, 5, True),
            (4, 5, True),
            (2, 5, False),
            (8, 5, False),
            (1, 15, True),
            (2, 15, True),
            (4, 15, True),
            (8, 15, True),
        ],
    )
    def test_overlap(self, required: int, granted: int, expected: bool):
        assert has_access(required, granted) is expected

    def test_partial_overlap_is_enough(self):
        """A READ grant satisfies a READ|WRITE request."""
        assert has_access(Access.READ | Access.WRITE, Access.READ) is True

    def test_nothing_requested_is_denied(self):
        assert has_access(0, 15) is False


class TestCombineAccess:
    def test_no_values_is_zero(self):
        assert combine_access() == 0

    def test_all_bits(self):
        assert combine_access(1, 2, 4, 8) == 15

    @pytest.mark.parametrize(
        ("access", "expected"),
        [
            ((1, 2), 3),
            ((1, 4), 5),
            ((2, 8), 10),
            ((4, 8), 12),
            ((1, 2, 8), 11),
            ((2, 4, 8), 14),
            ((1, 1, 1), 1),
        ],
    )
    def test_or_fold(self, access: tuple[int, ...], expected: int):
        assert combine_access(*access) == expected

    def test_returns_plain_int(self):
        assert type(combine_access(Access.READ, Access.DELETE)) is int


class TestHttpMethodToAccessCode:
    @pytest.mark.parametrize(
        ("methods", "expected"),
        [
            (["GET"], Access.READ),
            (["POST"], Access.WRITE),
            (["DELETE"], Access.DELETE),
            (["PATCH"], Access.UPDATE),
            (["PUT"], Access.UPDATE),
            (["GET", "POST"], 3),
            (["GET", "DELETE"], Access.READ | Access.DELETE),
            (["POST", "PATCH"], Access.WRITE | Access.UPDATE),
            (["GET", "POST", "DELETE", "PATCH"], 15),
        ],
    )
    def test_known_methods(self, methods: list[str], expected: int):
        assert http_method_to_access_code(*methods) == expected

    def test_unknown_method_contributes_nothing(self):
        assert http_method_to_access_code("OPTIONS") == 0
        assert http_method_to_access_code("GET", "HEAD") == Access.READ

    def test_lowercase_methods(self):
        assert http_method_to_access_code("get", "post") == 3
