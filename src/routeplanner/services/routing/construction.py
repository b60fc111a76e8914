"""Nearest-neighbor construction of the initial visiting order."""

from __future__ import annotations

import logging
from typing import Optional

from ...errors import InvalidInputError
from ...models.domain import DistanceMatrix, Tour

logger = logging.getLogger(__name__)


def validate_endpoints(
    size: int,
    fixed_start: Optional[int],
    fixed_end: Optional[int],
    round_trip: bool,
) -> None:
    if size < 2:
        raise InvalidInputError("At least two stops are required to plan a route.")
    for label, index in (("fixed start", fixed_start), ("fixed end", fixed_end)):
        if index is not None and not 0 <= index < size:
            raise InvalidInputError(f"The {label} index {index} is outside the {size} stops supplied.")
    if fixed_end is not None:
        if round_trip:
            raise InvalidInputError("A round trip ends at its start; it cannot also have a fixed end.")
        if fixed_end == (fixed_start if fixed_start is not None else 0):
            raise InvalidInputError("The fixed start and fixed end must be different stops.")


def build_initial_tour(
    matrix: DistanceMatrix,
    *,
    fixed_start: Optional[int] = None,
    fixed_end: Optional[int] = None,
    round_trip: bool = False,
    use_traffic: bool = False,
) -> Tour:
    """Greedy tour: always drive to the closest (by travel time) unvisited stop.

    The walk begins at ``fixed_start`` (default: stop 0). A fixed end is held
    out of the candidate pool and appended last. Equal costs resolve to the
    lower stop index, so identical inputs always produce the same tour. For a
    round trip the start is appended again and the closing leg is costed.
    """
    size = matrix.size
    validate_endpoints(size, fixed_start, fixed_end, round_trip)
    start = fixed_start if fixed_start is not None else 0

    unvisited = [index for index in range(size) if index != start and index != fixed_end]
    order = [start]
    current = start
    while unvisited:
        # min() keeps the first of equal keys and ``unvisited`` is ascending.
        nearest = min(unvisited, key=lambda candidate: matrix.cost(current, candidate, use_traffic))
        order.append(nearest)
        unvisited.remove(nearest)
        current = nearest

    if fixed_end is not None:
        order.append(fixed_end)
    elif round_trip:
        order.append(start)

    cost = matrix.path_cost(order, use_traffic)
    logger.debug(f"Nearest-neighbor tour {order} costs {cost:.1f}s")
    return Tour(order=tuple(order), cost=cost, locked_end=fixed_end is not None or round_trip)
