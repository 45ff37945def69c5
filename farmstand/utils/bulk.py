"""Resilient bulk processing.

One bad record never aborts a batch: every item is attempted and the outcome
is folded into successes and errors. Used by order listing, bulk status
updates, batch stock restoration and the no-show sweep.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, List, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BulkOutcome(Generic[R]):
    """Accumulated results of a bulk operation."""

    successes: List[R] = field(default_factory=list)
    errors: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def failed_keys(self) -> List[str]:
        return [key for key, _ in self.errors]


def process_all(
    items: Iterable[T],
    handler: Callable[[T], R],
    key: Callable[[T], str] = str,
    context: str = "bulk",
) -> BulkOutcome[R]:
    """Apply ``handler`` to every item, collecting failures instead of raising.

    ``key`` names an item in the error list (an order id, usually).
    """
    outcome: BulkOutcome[R] = BulkOutcome()
    for item in items:
        try:
            outcome.successes.append(handler(item))
        except Exception as e:
            item_key = _safe_key(key, item)
            logger.warning("%s: skipping %s: %s", context, item_key, e)
            outcome.errors.append((item_key, str(e)))
    return outcome


def _safe_key(key: Callable, item) -> str:
    try:
        return str(key(item))
    except Exception:
        return repr(item)
