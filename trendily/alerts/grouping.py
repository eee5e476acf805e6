"""
Subscriber grouping by keyword.

One trend-source fetch per distinct keyword, whatever the number of
subscribers, is the pipeline's only volume control.  ``group_by_keyword`` builds
the keyword -> subscribers mapping once per run; the orchestrator iterates it in
order and never fetches the same keyword twice.

Ordering:
  - Groups appear in order of the keyword's first occurrence in the input.
  - Members keep their relative input order (the store's return order).

The result is a read-only ``MappingProxyType`` over tuples.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping

from trendily.models.subscription import Subscription


def group_by_keyword(
    subscriptions: Iterable[Subscription],
) -> Mapping[str, tuple[Subscription, ...]]:
    """Partition subscriptions by keyword.

    Keywords are compared exactly as stored (already whitespace-trimmed by the
    ``Subscription`` model); ``"AI"`` and ``"ai"`` are different trend queries.

    Args:
        subscriptions: Subscriptions in store order.

    Returns:
        Read-only mapping of keyword to the ordered tuple of its subscriptions.
    """
    groups: dict[str, list[Subscription]] = {}
    for sub in subscriptions:
        groups.setdefault(sub.keyword, []).append(sub)
    return MappingProxyType({k: tuple(v) for k, v in groups.items()})
