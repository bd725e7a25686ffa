"""
Token Range for NodeSync Coverage

Closed intervals over the signed 64-bit token ring. Ranges wrapping past the
ring's maximum are never represented directly; they are split by the caller.
"""

from dataclasses import dataclass


MIN_TOKEN = -(2 ** 63)
MAX_TOKEN = 2 ** 63 - 1


class InvalidTokenRangeError(ValueError):
    """Raised when a token range is built with inverted or out-of-ring bounds."""
    pass


class IncompatibleRangesError(ValueError):
    """Raised when merging two ranges that neither overlap nor touch."""
    pass


@dataclass(frozen=True, order=True)
class TokenRange:
    """
    Immutable closed interval ``[lower, upper]`` of ring tokens.

    Ordering compares ``lower`` first, then ``upper``.

    Attributes:
        lower: First token of the range (inclusive)
        upper: Last token of the range (inclusive)
    """

    lower: int
    upper: int

    def __post_init__(self):
        for name, bound in (("lower", self.lower), ("upper", self.upper)):
            if not isinstance(bound, int) or isinstance(bound, bool):
                raise InvalidTokenRangeError(
                    f"{name.capitalize()} bound must be an integer, got {bound!r}"
                )
            if bound < MIN_TOKEN or bound > MAX_TOKEN:
                raise InvalidTokenRangeError(
                    f"{name.capitalize()} bound {bound} is outside the token ring "
                    f"[{MIN_TOKEN};{MAX_TOKEN}]"
                )

        if self.lower > self.upper:
            raise InvalidTokenRangeError(
                f"Lower bound {self.lower} cannot be greater than upper bound {self.upper}"
            )

    def __str__(self) -> str:
        return f"[{self.lower};{self.upper}]"

    def contains(self, token: int) -> bool:
        """Check whether a token falls inside the range."""
        return self.lower <= token <= self.upper

    def can_intersect(self, bound: int) -> bool:
        """
        Check whether a bound falls inside the range or right next to it.

        Tolerating one token on either side lets contiguous ranges such as
        ``[0;10]`` and ``[11;20]`` be treated as intersecting.

        Args:
            bound: Token to test

        Returns:
            True if ``bound - 1``, ``bound`` or ``bound + 1`` is contained
        """
        return (
            self.contains(bound - 1) or
            self.contains(bound) or
            self.contains(bound + 1)
        )

    def intersects(self, other: "TokenRange") -> bool:
        """Check whether either bound of another range touches this one."""
        return self.can_intersect(other.lower) or self.can_intersect(other.upper)

    def merge(self, other: "TokenRange") -> "TokenRange":
        """
        Merge two intersecting ranges into the smallest range spanning both.

        Args:
            other: Range to merge with

        Returns:
            New range ``[min(lowers);max(uppers)]``

        Raises:
            IncompatibleRangesError: If the ranges do not intersect
        """
        # intersects() only looks at other's bounds; a range swallowing this
        # one entirely must be checked from the other side as well.
        if not (self.intersects(other) or other.intersects(self)):
            raise IncompatibleRangesError(
                f"Cannot merge ranges {self} and {other} as they are not contiguous"
            )

        return TokenRange(min(self.lower, other.lower), max(self.upper, other.upper))

    def with_lower(self, new_lower: int) -> "TokenRange":
        """Return a copy with the lower bound replaced."""
        return TokenRange(new_lower, self.upper)

    def with_upper(self, new_upper: int) -> "TokenRange":
        """Return a copy with the upper bound replaced."""
        return TokenRange(self.lower, new_upper)

    def token_count(self) -> int:
        """Number of tokens in the range, bounds included."""
        return self.upper - self.lower + 1

    def is_full_ring(self) -> bool:
        return self.lower == MIN_TOKEN and self.upper == MAX_TOKEN


FULL_TOKEN_RANGE = TokenRange(MIN_TOKEN, MAX_TOKEN)

RING_SIZE = FULL_TOKEN_RANGE.token_count()
