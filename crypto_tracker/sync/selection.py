"""
Selection Context.

Every in-flight fetch carries the SelectionTag that was current when it
started. On completion the tag is compared with the live context: a result
for a (symbol, range) the user has moved away from still lands in the
Freshness Store but never in view state.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SelectionTag:
    """Immutable stamp of the selection an operation was started for."""
    symbol: str
    range_days: int
    generation: int = 0

    @property
    def target(self) -> tuple[str, int]:
        return (self.symbol, self.range_days)


class SelectionContext:
    """The (symbol, range) pair the user is currently viewing."""

    def __init__(self, symbol: str, range_days: int):
        self._symbol = symbol
        self._range_days = range_days
        self._generation = 0

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def range_days(self) -> int:
        return self._range_days

    @property
    def generation(self) -> int:
        """Number of selection changes so far."""
        return self._generation

    @property
    def current(self) -> SelectionTag:
        return SelectionTag(self._symbol, self._range_days, self._generation)

    def select(self, symbol: str = None, range_days: int = None) -> SelectionTag:
        """Move to a new target; unchanged fields keep their value."""
        new_symbol = self._symbol if symbol is None else symbol
        new_range = self._range_days if range_days is None else range_days

        if (new_symbol, new_range) != (self._symbol, self._range_days):
            self._symbol = new_symbol
            self._range_days = new_range
            self._generation += 1

        return self.current

    def is_current(self, tag: SelectionTag) -> bool:
        """
        Whether results for tag may still be shown.

        Compared by target, not generation: switching away and back makes an
        earlier request for the same target relevant again.
        """
        return tag.target == (self._symbol, self._range_days)
