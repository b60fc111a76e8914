"""Route optimization orchestration service."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from ...config import Settings, settings as default_settings
from ...errors import InternalInvariantViolation, InvalidInputError, OptimizationTimeoutError, RouteOptimizationError
from ...models.domain import OptimizedRouteResult, Stop, StopRole
from ...schemas.routing import OptimizationRequest
from .assembly import RouteAssembler
from .cache import CellCache
from .construction import build_initial_tour, validate_endpoints
from .improvement import improve_tour
from .matrix import DistanceMatrixBuilder
from .providers.base import RoutingProvider
from .retry import Deadline, RetryPolicy
from .workers import call_in_daemon

logger = logging.getLogger(__name__)


class RequestStage(str, Enum):
    RECEIVED = "received"
    MATRIX_BUILDING = "matrix_building"
    TOUR_CONSTRUCTING = "tour_constructing"
    TOUR_IMPROVING = "tour_improving"
    ASSEMBLING = "assembling"
    COMPLETED = "completed"
    FAILED = "failed"


class OptimizationRun:
    """Tracks the stage of a single planning request."""

    def __init__(self, stop_count: int) -> None:
        self.stop_count = stop_count
        self.stage = RequestStage.RECEIVED
        self.failure: Optional[str] = None
        self._started = time.monotonic()
        logger.info(f"Route optimization received: {stop_count} stops")

    def advance(self, stage: RequestStage) -> None:
        if self.stage in (RequestStage.COMPLETED, RequestStage.FAILED):
            raise InternalInvariantViolation(f"Cannot move to {stage.value} from terminal stage {self.stage.value}.")
        logger.debug(f"Route optimization stage: {self.stage.value} -> {stage.value}")
        self.stage = stage
        if stage is RequestStage.COMPLETED:
            logger.info(f"Route optimization completed in {time.monotonic() - self._started:.2f}s")

    def fail(self, error: RouteOptimizationError) -> None:
        if self.stage is RequestStage.FAILED:
            return
        logger.warning(f"Route optimization failed during {self.stage.value} ({error.kind}): {error.message}")
        self.failure = error.kind
        self.stage = RequestStage.FAILED


def build_stops(request: OptimizationRequest, config: Settings | None = None) -> list[Stop]:
    """Convert request stops to domain stops and validate the endpoint pins."""
    config = config or default_settings
    count = len(request.stops)
    if count > config.max_stops:
        raise InvalidInputError(f"At most {config.max_stops} stops can be optimized at once (got {count}).")
    validate_endpoints(count, request.fixed_start_index, request.fixed_end_index, request.round_trip)

    stops: list[Stop] = []
    for index, item in enumerate(request.stops):
        address = (item.address or "").strip()
        if index == request.fixed_start_index:
            role = StopRole.FIXED_START
        elif index == request.fixed_end_index:
            role = StopRole.FIXED_END
        else:
            role = StopRole.FREE
        stops.append(
            Stop(
                stop_id=item.stop_id or f"stop-{index}",
                address=address,
                display_name=(item.display_name or "").strip() or address,
                latitude=item.latitude,
                longitude=item.longitude,
                input_index=index,
                place_id=item.place_id,
                role=role,
            )
        )
    return stops


def _run_pipeline(
    request: OptimizationRequest,
    stops: list[Stop],
    *,
    provider: RoutingProvider,
    cache: CellCache | None,
    config: Settings,
    deadline: Deadline,
    run: OptimizationRun,
) -> OptimizedRouteResult:
    departure_time = request.departure_time or datetime.now(timezone.utc)
    retry_policy = RetryPolicy.from_settings(config)
    use_traffic = request.consider_traffic

    run.advance(RequestStage.MATRIX_BUILDING)
    builder = DistanceMatrixBuilder(
        provider,
        cache,
        retry_policy=retry_policy,
        max_parallel_requests=config.max_parallel_requests,
        cache_bucket_minutes=config.cache_bucket_minutes,
    )
    built = builder.build(
        stops,
        consider_traffic=use_traffic,
        departure_time=departure_time,
        deadline=deadline,
    )

    deadline.check("tour construction")
    run.advance(RequestStage.TOUR_CONSTRUCTING)
    initial = build_initial_tour(
        built.matrix,
        fixed_start=request.fixed_start_index,
        fixed_end=request.fixed_end_index,
        round_trip=request.round_trip,
        use_traffic=use_traffic,
    )

    run.advance(RequestStage.TOUR_IMPROVING)
    improved = improve_tour(
        initial,
        built.matrix,
        use_traffic=use_traffic,
        max_sweeps=config.two_opt_max_sweeps,
        deadline=deadline,
    )
    logger.info(
        f"Tour cost {initial.cost:.0f}s after nearest neighbor, {improved.tour.cost:.0f}s after 2-opt "
        f"({improved.reversals} reversals)"
    )

    run.advance(RequestStage.ASSEMBLING)
    metadata = {
        "provider": provider.name,
        "initial_cost_seconds": initial.cost,
        "optimized_cost_seconds": improved.tour.cost,
        "matrix_distance_meters": built.matrix.path_distance(improved.tour.order),
        "two_opt_sweeps": improved.sweeps,
        "two_opt_reversals": improved.reversals,
        "two_opt_converged": improved.converged,
        "matrix_provider_calls": built.provider_calls,
        "matrix_cached_cells": built.cached_cells,
        "round_trip": request.round_trip,
        "consider_traffic": use_traffic,
        "departure_time": departure_time.isoformat(),
        "units": config.units,
    }
    assembler = RouteAssembler(provider, retry_policy=retry_policy, units=config.units)
    result = assembler.assemble(
        [stops[position] for position in improved.tour.order],
        departure_time=departure_time,
        consider_traffic=use_traffic,
        deadline=deadline,
        metadata=metadata,
    )
    run.advance(RequestStage.COMPLETED)
    return result


def optimize_route(
    request: OptimizationRequest,
    *,
    provider: RoutingProvider,
    cache: CellCache | None = None,
    config: Settings | None = None,
    timeout_seconds: float | None = None,
) -> OptimizedRouteResult:
    """Plan the fastest visiting order for the requested stops.

    The pipeline (matrix, nearest neighbor, 2-opt, assembly) runs on a daemon
    thread and the caller waits at most the request's time budget for it. A
    provider call still stuck at that point is abandoned with its thread.
    Either a complete result is returned or a ``RouteOptimizationError`` is
    raised; unexpected exceptions surface as ``InternalInvariantViolation``.
    """
    config = config or default_settings
    budget = timeout_seconds or request.timeout_seconds or config.request_timeout_seconds
    run = OptimizationRun(len(request.stops))

    try:
        stops = build_stops(request, config)
    except RouteOptimizationError as exc:
        run.fail(exc)
        raise

    deadline = Deadline(budget)
    try:
        return call_in_daemon(
            lambda: _run_pipeline(
                request,
                stops,
                provider=provider,
                cache=cache,
                config=config,
                deadline=deadline,
                run=run,
            ),
            timeout=budget,
            name="route-optimizer",
        )
    except TimeoutError as exc:
        error = OptimizationTimeoutError(f"Route optimization did not finish within {budget:.1f}s.")
        run.fail(error)
        raise error from exc
    except RouteOptimizationError as exc:
        run.fail(exc)
        raise
    except Exception as exc:
        logger.exception(f"Unexpected failure while optimizing route: {exc}")
        error = InternalInvariantViolation(f"Unexpected failure while optimizing route: {exc}")
        run.fail(error)
        raise error from exc
