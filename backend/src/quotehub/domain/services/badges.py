"""Badge assignment — flags the cheapest and fastest quotes of a result set."""

from __future__ import annotations

from quotehub.domain.entities import Quote


def assign_badges(quotes: list[Quote]) -> list[Quote]:
    """Mark exactly one ``is_cheapest`` and one ``is_fastest`` quote.

    Cheapest is the minimum price, first in input order on ties.  Fastest is
    the minimum ``estimated_days``; ties go to the lower price, then input
    order.  Only the two flags are touched.
    """
    if not quotes:
        return quotes

    for quote in quotes:
        quote.is_cheapest = False
        quote.is_fastest = False

    # min() keeps the first of equal keys, which gives input-order tie-breaks.
    cheapest = min(quotes, key=lambda q: q.price)
    fastest = min(quotes, key=lambda q: (q.estimated_days, q.price))

    cheapest.is_cheapest = True
    fastest.is_fastest = True
    return quotes
