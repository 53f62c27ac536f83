"""
In-memory order list used by the CLI demo.

Stands in for the order list UI: it owns the selected index and exposes
the three navigation hooks the voice dispatcher drives.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from voice.commands import NavigationCallbacks

logger = logging.getLogger(__name__)


@dataclass
class Order:
    """A placeholder order row."""
    number: int
    title: str


def demo_orders(count: int) -> List[Order]:
    return [Order(number=i, title=f"Order #{i:04d}") for i in range(1, count + 1)]


@dataclass
class OrderPager:
    orders: List[Order] = field(default_factory=list)
    index: int = 0
    on_change: Optional[Callable[[Order], None]] = None

    def __len__(self) -> int:
        return len(self.orders)

    @property
    def current(self) -> Optional[Order]:
        if not self.orders:
            return None
        return self.orders[self.index]

    def select(self, index: int) -> None:
        """Jump to a 0-based index, clamped to the list."""
        if not self.orders:
            return
        self.index = max(0, min(index, len(self.orders) - 1))
        self._changed()

    def next(self) -> None:
        self.select(self.index + 1)

    def previous(self) -> None:
        self.select(self.index - 1)

    def callbacks(self) -> NavigationCallbacks:
        return NavigationCallbacks(
            on_next_order=self.next,
            on_prev_order=self.previous,
            on_select_order=self.select,
        )

    def _changed(self) -> None:
        order = self.current
        logger.info("[orders] %d/%d %s", self.index + 1, len(self.orders), order.title)
        if self.on_change:
            self.on_change(order)
