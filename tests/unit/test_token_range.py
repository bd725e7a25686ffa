"""
Unit tests for the token range module.
"""

import pytest

from nodesync_audit.coverage.token_range import (
    FULL_TOKEN_RANGE,
    MAX_TOKEN,
    MIN_TOKEN,
    RING_SIZE,
    IncompatibleRangesError,
    InvalidTokenRangeError,
    TokenRange,
)


class TestTokenRangeConstruction:
    """Test construction and validation of token ranges."""

    @pytest.mark.parametrize("lower,upper", [
        (0, 0),
        (-10, 10),
        (MIN_TOKEN, MAX_TOKEN),
        (MAX_TOKEN, MAX_TOKEN),
        (MIN_TOKEN, MIN_TOKEN),
    ])
    def test_valid_bounds_contain_themselves(self, lower, upper):
        """Test that a valid range contains both bounds and nothing just outside."""
        token_range = TokenRange(lower, upper)

        assert token_range.contains(lower)
        assert token_range.contains(upper)
        assert not token_range.contains(lower - 1)
        assert not token_range.contains(upper + 1)

    def test_inverted_bounds_raise(self):
        """Test that lower > upper is rejected."""
        with pytest.raises(InvalidTokenRangeError, match="cannot be greater than upper bound"):
            TokenRange(10, -10)

    def test_bounds_outside_ring_raise(self):
        """Test that bounds beyond signed 64-bit are rejected."""
        with pytest.raises(InvalidTokenRangeError, match="outside the token ring"):
            TokenRange(MIN_TOKEN - 1, 0)

        with pytest.raises(InvalidTokenRangeError, match="outside the token ring"):
            TokenRange(0, MAX_TOKEN + 1)

    def test_non_integer_bounds_raise(self):
        """Test that non-integer bounds are rejected."""
        with pytest.raises(InvalidTokenRangeError, match="must be an integer"):
            TokenRange(0.5, 10)

    def test_construction_error_is_value_error(self):
        """Test that construction errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            TokenRange(1, 0)

    def test_full_range(self):
        """Test the full ring constant."""
        assert FULL_TOKEN_RANGE == TokenRange(MIN_TOKEN, MAX_TOKEN)
        assert FULL_TOKEN_RANGE.is_full_ring()
        assert FULL_TOKEN_RANGE.token_count() == RING_SIZE == 2 ** 64

    def test_str_format(self):
        """Test the [lower;upper] rendering."""
        assert str(TokenRange(-5, 12)) == "[-5;12]"

    def test_immutable(self):
        """Test that bounds cannot be reassigned."""
        token_range = TokenRange(0, 10)

        with pytest.raises(AttributeError):
            token_range.lower = 5

    def test_ordering_by_lower_then_upper(self):
        """Test ordering compares lower bound first, then upper bound."""
        ranges = [TokenRange(5, 6), TokenRange(0, 20), TokenRange(0, 10), TokenRange(-3, 100)]

        assert sorted(ranges) == [
            TokenRange(-3, 100),
            TokenRange(0, 10),
            TokenRange(0, 20),
            TokenRange(5, 6),
        ]


class TestTokenRangeIntersection:
    """Test fuzzy intersection of token ranges."""

    @pytest.fixture
    def token_range(self):
        return TokenRange(0, 10)

    @pytest.mark.parametrize("bound,expected", [
        (-2, False),
        (-1, True),
        (0, True),
        (5, True),
        (10, True),
        (11, True),
        (12, False),
    ])
    def test_can_intersect_boundaries(self, token_range, bound, expected):
        """Test that can_intersect tolerates exactly one token on each side."""
        assert token_range.can_intersect(bound) is expected

    def test_can_intersect_at_ring_ends(self):
        """Test tolerance at the ring extremes does not overflow."""
        assert FULL_TOKEN_RANGE.can_intersect(MIN_TOKEN)
        assert FULL_TOKEN_RANGE.can_intersect(MAX_TOKEN)

    def test_contiguous_ranges_intersect(self):
        """Test that [0;10] and [11;20] count as intersecting."""
        assert TokenRange(0, 10).intersects(TokenRange(11, 20))
        assert TokenRange(11, 20).intersects(TokenRange(0, 10))

    def test_overlapping_ranges_intersect(self):
        """Test that overlapping ranges intersect."""
        assert TokenRange(0, 10).intersects(TokenRange(5, 20))

    def test_shared_boundary_intersects(self):
        """Test ranges sharing a boundary token intersect."""
        assert TokenRange(0, 10).intersects(TokenRange(10, 20))

    def test_distant_ranges_do_not_intersect(self):
        """Test that ranges separated by a gap do not intersect."""
        assert not TokenRange(0, 10).intersects(TokenRange(12, 20))
        assert not TokenRange(12, 20).intersects(TokenRange(0, 10))

    def test_intersects_only_checks_other_bounds(self):
        """Test that a range strictly inside another is seen from the outer one only."""
        outer = TokenRange(0, 100)
        inner = TokenRange(40, 60)

        assert outer.intersects(inner)
        assert not inner.intersects(outer)


class TestTokenRangeMerge:
    """Test merging and bound replacement."""

    def test_merge_overlapping(self):
        """Test merging overlapping ranges."""
        assert TokenRange(0, 10).merge(TokenRange(5, 20)) == TokenRange(0, 20)

    def test_merge_contiguous(self):
        """Test merging contiguous ranges."""
        assert TokenRange(0, 10).merge(TokenRange(11, 20)) == TokenRange(0, 20)

    @pytest.mark.parametrize("first,second", [
        (TokenRange(0, 10), TokenRange(5, 20)),
        (TokenRange(0, 10), TokenRange(11, 20)),
        (TokenRange(0, 100), TokenRange(40, 60)),
        (TokenRange(MIN_TOKEN, 0), TokenRange(0, MAX_TOKEN)),
    ])
    def test_merge_is_commutative(self, first, second):
        """Test that a.merge(b) == b.merge(a)."""
        assert first.merge(second) == second.merge(first)
        merged = first.merge(second)
        assert merged.lower == min(first.lower, second.lower)
        assert merged.upper == max(first.upper, second.upper)

    def test_merge_non_intersecting_raises(self):
        """Test that merging ranges separated by a gap fails."""
        with pytest.raises(IncompatibleRangesError, match="not contiguous"):
            TokenRange(0, 10).merge(TokenRange(12, 20))

        with pytest.raises(IncompatibleRangesError):
            TokenRange(12, 20).merge(TokenRange(0, 10))

    def test_with_upper(self):
        """Test replacing the upper bound."""
        original = TokenRange(0, 10)

        assert original.with_upper(5) == TokenRange(0, 5)
        assert original == TokenRange(0, 10)

    def test_with_lower(self):
        """Test replacing the lower bound."""
        assert TokenRange(0, 10).with_lower(3) == TokenRange(3, 10)

    def test_with_bounds_revalidate(self):
        """Test that inverting bounds through replacement fails."""
        with pytest.raises(InvalidTokenRangeError):
            TokenRange(0, 10).with_upper(-1)

        with pytest.raises(InvalidTokenRangeError):
            TokenRange(0, 10).with_lower(11)

    def test_token_count(self):
        """Test token counting is inclusive of both bounds."""
        assert TokenRange(0, 0).token_count() == 1
        assert TokenRange(-5, 5).token_count() == 11
