"""Strategies for choosing which linked articles make it into a graph."""

import logging
import random
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

ALPHABETICAL = "alphabetical"
LINK_ORDER = "link-order"
RANDOM = "random"

FilterFn = Callable[[list[str], int], list[str]]


class FilterStrategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    filter: FilterFn


class NodeFilter:
    """Registry of link filtering strategies.

    Ships with ``alphabetical`` (the links API already sorts them),
    ``link-order`` (the caller supplies links in source order) and
    ``random``. Unknown strategy ids fall back to ``alphabetical``.

    Args:
        rng: Random source for the ``random`` strategy.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._strategies: dict[str, FilterStrategy] = {}
        self.register_strategy(
            ALPHABETICAL,
            FilterStrategy(name="Alphabetical", description="Sort links alphabetically", filter=_first_n),
        )
        self.register_strategy(
            LINK_ORDER,
            FilterStrategy(
                name="Link Order", description="Order by appearance in source article", filter=_first_n
            ),
        )
        self.register_strategy(
            RANDOM,
            FilterStrategy(name="Random", description="Randomly select linked articles", filter=self._sample),
        )

    def _sample(self, links: list[str], max_count: int) -> list[str]:
        return self._rng.sample(links, min(max(max_count, 0), len(links)))

    def register_strategy(self, strategy_id: str, strategy: FilterStrategy) -> None:
        if not strategy.name:
            raise ValueError("Invalid strategy: must have a name")
        self._strategies[strategy_id] = strategy

    def has_strategy(self, strategy_id: str) -> bool:
        return strategy_id in self._strategies

    def available_strategies(self) -> list[dict[str, str]]:
        return [
            {"id": sid, "name": s.name, "description": s.description}
            for sid, s in self._strategies.items()
        ]

    def apply_filter(
        self, links: list[str], max_count: int, strategy_id: str = ALPHABETICAL
    ) -> list[str]:
        """Pick at most *max_count* of *links* using *strategy_id*.

        A strategy that raises degrades to the first *max_count* links.
        """
        strategy = self._strategies.get(strategy_id)
        if strategy is None:
            logger.warning("Unknown filtering strategy %r, falling back to %s", strategy_id, ALPHABETICAL)
            strategy = self._strategies[ALPHABETICAL]

        try:
            return strategy.filter(links, max_count)
        except Exception:
            logger.exception("Filtering strategy %r failed", strategy_id)
            return _first_n(links, max_count)


def _first_n(links: list[str], max_count: int) -> list[str]:
    return links[: max(max_count, 0)]
