import threading
import time
from datetime import datetime, timezone

import pytest

from conftest import BlockingProvider, PlanarProvider
from routeplanner.config import Settings
from routeplanner.errors import InternalInvariantViolation, InvalidInputError, OptimizationTimeoutError
from routeplanner.models.domain import StopRole
from routeplanner.schemas.routing import OptimizationRequest
from routeplanner.services.routing import service as routing_service
from routeplanner.services.routing.cache import MatrixCache
from routeplanner.services.routing.service import build_stops, optimize_route

SQUARE_ORDERS = {(0, 2, 1, 3, 0), (0, 3, 1, 2, 0)}


def _config(**overrides) -> Settings:
    values = {"provider_backoff_seconds": 0.0, "provider_max_backoff_seconds": 0.0}
    values.update(overrides)
    return Settings(**values)


def _line_request(count: int, **kwargs) -> OptimizationRequest:
    stops = [{"address": f"{i} Line Road", "latitude": 0.0, "longitude": float(i)} for i in range(count)]
    return OptimizationRequest(stops=stops, consider_traffic=False, **kwargs)


def test_square_round_trip(square_payload: dict, planar_provider: PlanarProvider):
    request = OptimizationRequest(**square_payload)

    result = optimize_route(request, provider=planar_provider, config=_config())

    assert result.waypoint_order in SQUARE_ORDERS
    assert result.total_distance_meters == pytest.approx(40.0)
    assert len(result.legs) == 4
    assert result.stops[0].stop_id == result.stops[-1].stop_id == "A"
    assert result.metadata["round_trip"] is True
    assert result.metadata["provider"] == "planar"
    assert result.metadata["optimized_cost_seconds"] <= result.metadata["initial_cost_seconds"]


def test_every_stop_visited_once(planar_provider: PlanarProvider):
    request = _line_request(7)

    result = optimize_route(request, provider=planar_provider, config=_config())

    assert sorted(result.waypoint_order) == list(range(7))
    assert len(result.stops) == 7


def test_fixed_endpoints_are_honoured(planar_provider: PlanarProvider):
    request = _line_request(6, fixed_start_index=3, fixed_end_index=1)

    result = optimize_route(request, provider=planar_provider, config=_config())

    assert result.waypoint_order[0] == 3
    assert result.waypoint_order[-1] == 1
    assert result.stops[0].role is StopRole.FIXED_START
    assert result.stops[-1].role is StopRole.FIXED_END


def test_repeated_runs_are_identical(planar_provider: PlanarProvider):
    request = OptimizationRequest(
        stops=[
            {"address": f"Stop {i}", "latitude": float((i * 37) % 11), "longitude": float((i * 53) % 13)}
            for i in range(10)
        ],
        consider_traffic=False,
    )

    first = optimize_route(request, provider=planar_provider, config=_config())
    second = optimize_route(request, provider=planar_provider, config=_config())

    assert first.waypoint_order == second.waypoint_order
    assert first.total_distance_meters == second.total_distance_meters


def test_shared_cache_avoids_second_matrix_call(planar_provider: PlanarProvider):
    cache = MatrixCache(ttl_seconds=60)
    request = _line_request(4, departure_time=datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc))

    optimize_route(request, provider=planar_provider, cache=cache, config=_config())
    result = optimize_route(request, provider=planar_provider, cache=cache, config=_config())

    assert len(planar_provider.matrix_calls) == 1
    assert result.metadata["matrix_provider_calls"] == 0


def test_too_many_stops_is_invalid(planar_provider: PlanarProvider):
    with pytest.raises(InvalidInputError):
        optimize_route(_line_request(6), provider=planar_provider, config=_config(max_stops=5))
    assert planar_provider.matrix_calls == []


@pytest.mark.parametrize(
    "kwargs",
    [
        {"fixed_start_index": 9},
        {"fixed_start_index": 1, "fixed_end_index": 1},
        {"fixed_end_index": 2, "round_trip": True},
    ],
)
def test_conflicting_pins_are_invalid(kwargs, planar_provider: PlanarProvider):
    with pytest.raises(InvalidInputError):
        optimize_route(_line_request(4, **kwargs), provider=planar_provider, config=_config())


def test_single_stop_is_invalid(planar_provider: PlanarProvider):
    with pytest.raises(InvalidInputError):
        optimize_route(_line_request(1), provider=planar_provider, config=_config())


def test_hung_provider_times_out(blocking_provider: BlockingProvider):
    started = time.monotonic()

    with pytest.raises(OptimizationTimeoutError):
        optimize_route(_line_request(3), provider=blocking_provider, config=_config(), timeout_seconds=0.3)

    assert time.monotonic() - started < 5.0


def test_timed_out_request_leaves_only_daemon_threads(blocking_provider: BlockingProvider):
    before = set(threading.enumerate())

    with pytest.raises(OptimizationTimeoutError):
        optimize_route(_line_request(3), provider=blocking_provider, config=_config(), timeout_seconds=0.2)

    leftover = [thread for thread in threading.enumerate() if thread not in before]
    assert leftover
    assert all(thread.daemon for thread in leftover)


def test_unexpected_errors_become_internal(planar_provider: PlanarProvider, monkeypatch: pytest.MonkeyPatch):
    def broken(*args, **kwargs):
        raise KeyError("boom")

    monkeypatch.setattr(routing_service, "build_initial_tour", broken)

    with pytest.raises(InternalInvariantViolation):
        optimize_route(_line_request(3), provider=planar_provider, config=_config())


def test_build_stops_defaults():
    request = OptimizationRequest(
        stops=[
            {"address": "  1 Main St ", "latitude": 1.0, "longitude": 2.0},
            {"place_id": "ChIJ123", "display_name": "Coffee Bar", "latitude": 1.5, "longitude": 2.5},
        ],
        fixed_start_index=0,
    )

    stops = build_stops(request, _config())

    assert stops[0].stop_id == "stop-0"
    assert stops[0].address == "1 Main St"
    assert stops[0].display_name == "1 Main St"
    assert stops[0].role is StopRole.FIXED_START
    assert stops[1].address == ""
    assert stops[1].display_name == "Coffee Bar"
    assert stops[1].place_id == "ChIJ123"
