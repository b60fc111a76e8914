"""2-opt local search over a constructed tour."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ...config import settings
from ...errors import InternalInvariantViolation
from ...models.domain import DistanceMatrix, Tour
from .retry import Deadline

logger = logging.getLogger(__name__)

IMPROVEMENT_EPSILON = 1e-9


@dataclass(frozen=True, slots=True)
class TwoOptResult:
    tour: Tour
    sweeps: int
    reversals: int
    converged: bool


def _prefix_costs(order: list[int], matrix: DistanceMatrix, use_traffic: bool) -> tuple[list[float], list[float]]:
    """Running edge costs along the tour, forwards and with every edge reversed."""
    forward = [0.0]
    backward = [0.0]
    for a, b in zip(order[:-1], order[1:]):
        forward.append(forward[-1] + matrix.cost(a, b, use_traffic))
        backward.append(backward[-1] + matrix.cost(b, a, use_traffic))
    return forward, backward


def reversal_delta(
    order: list[int],
    i: int,
    j: int,
    matrix: DistanceMatrix,
    forward: list[float],
    backward: list[float],
    use_traffic: bool = False,
) -> float:
    """Cost change from reversing ``order[i:j + 1]``.

    The matrix may be asymmetric, so the inner segment is re-costed in the
    opposite direction. When ``j`` is the last position there is no outgoing
    edge to reconnect.
    """
    before, first, last = order[i - 1], order[i], order[j]
    delta = matrix.cost(before, last, use_traffic) - matrix.cost(before, first, use_traffic)
    delta += (backward[j] - backward[i]) - (forward[j] - forward[i])
    if j + 1 < len(order):
        after = order[j + 1]
        delta += matrix.cost(first, after, use_traffic) - matrix.cost(last, after, use_traffic)
    return delta


def improve_tour(
    tour: Tour,
    matrix: DistanceMatrix,
    *,
    use_traffic: bool = False,
    max_sweeps: Optional[int] = None,
    deadline: Optional[Deadline] = None,
) -> TwoOptResult:
    """Apply first-improvement 2-opt until no reversal helps.

    Position 0 never moves; the last position moves only when the tour has no
    locked end. Segments are scanned by ascending start then ascending end, and
    a reversal is applied as soon as it strictly lowers the cost. Sweeps stop
    after a full pass without improvement or after ``max_sweeps`` passes.
    """
    if max_sweeps is None:
        max_sweeps = settings.two_opt_max_sweeps
    order = list(tour.order)
    length = len(order)
    last_mutable = length - 2 if tour.locked_end else length - 1

    sweeps = 0
    reversals = 0
    converged = False
    if last_mutable - 1 < 1:
        # Fewer than two movable positions: nothing to reverse.
        return TwoOptResult(tour=tour, sweeps=0, reversals=0, converged=True)

    while sweeps < max_sweeps:
        if deadline is not None:
            deadline.check("tour improvement")
        sweeps += 1
        improved = False
        forward, backward = _prefix_costs(order, matrix, use_traffic)
        for i in range(1, last_mutable):
            for j in range(i + 1, last_mutable + 1):
                delta = reversal_delta(order, i, j, matrix, forward, backward, use_traffic)
                if delta < -IMPROVEMENT_EPSILON:
                    order[i:j + 1] = reversed(order[i:j + 1])
                    forward, backward = _prefix_costs(order, matrix, use_traffic)
                    reversals += 1
                    improved = True
        if not improved:
            converged = True
            break

    if not converged:
        logger.warning(f"2-opt stopped after {sweeps} sweeps without converging")

    if order[0] != tour.order[0] or (tour.locked_end and order[-1] != tour.order[-1]):
        raise InternalInvariantViolation("2-opt moved a locked tour endpoint.")

    cost = matrix.path_cost(order, use_traffic)
    if cost > tour.cost + 1e-6 * max(1.0, abs(tour.cost)):
        raise InternalInvariantViolation(f"2-opt increased the tour cost from {tour.cost} to {cost}.")
    logger.debug(f"2-opt: {reversals} reversals over {sweeps} sweeps, cost {tour.cost:.1f}s -> {cost:.1f}s")
    return TwoOptResult(
        tour=Tour(order=tuple(order), cost=cost, locked_end=tour.locked_end),
        sweeps=sweeps,
        reversals=reversals,
        converged=converged,
    )
