"""Distance matrix acquisition with chunking, caching and parallel provider calls."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from ...config import settings
from ...errors import InternalInvariantViolation, InvalidInputError, OptimizationTimeoutError, ProviderDataError
from ...models.domain import ZERO_CELL, DistanceMatrix, MatrixCell, Stop
from .cache import CellCache, cell_key, traffic_bucket
from .providers.base import RoutingProvider
from .retry import Deadline, RetryPolicy, call_with_retry
from .workers import run_all

logger = logging.getLogger(__name__)

IndexRange = tuple[int, int]
Block = tuple[IndexRange, IndexRange]


@dataclass(frozen=True, slots=True)
class MatrixBuildResult:
    matrix: DistanceMatrix
    provider_calls: int
    cached_cells: int


def chunk_ranges(count: int, chunk_size: int) -> list[IndexRange]:
    return [(start, min(start + chunk_size, count)) for start in range(0, count, chunk_size)]


class DistanceMatrixBuilder:
    """Build a complete N×N travel-cost matrix for a list of stops.

    When N×N exceeds the provider's per-call element limit the stops are split
    into square blocks and one provider call is issued per (origin block,
    destination block) pair, with at most ``max_parallel_requests`` in flight.
    Blocks are merged only once every one of them has succeeded.
    """

    def __init__(
        self,
        provider: RoutingProvider,
        cache: CellCache | None = None,
        *,
        retry_policy: RetryPolicy | None = None,
        max_parallel_requests: int | None = None,
        cache_bucket_minutes: int | None = None,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        if max_parallel_requests is None:
            max_parallel_requests = settings.max_parallel_requests
        if cache_bucket_minutes is None:
            cache_bucket_minutes = settings.cache_bucket_minutes
        self.max_parallel_requests = max_parallel_requests
        self.cache_bucket_minutes = cache_bucket_minutes

    @property
    def block_size(self) -> int:
        side = min(self.provider.max_matrix_dimension, math.isqrt(self.provider.max_matrix_elements))
        return max(1, side)

    def plan_blocks(self, count: int) -> list[Block]:
        if count * count <= self.provider.max_matrix_elements and count <= self.provider.max_matrix_dimension:
            return [((0, count), (0, count))]
        ranges = chunk_ranges(count, self.block_size)
        return [(src, dst) for src in ranges for dst in ranges]

    def build(
        self,
        stops: Sequence[Stop],
        *,
        consider_traffic: bool,
        departure_time: datetime,
        deadline: Optional[Deadline] = None,
    ) -> MatrixBuildResult:
        if len(stops) < 2:
            raise InvalidInputError("At least two stops are required to build a distance matrix.")
        deadline = deadline or Deadline.unbounded()
        n = len(stops)
        bucket = traffic_bucket(departure_time, consider_traffic, self.cache_bucket_minutes)

        cached = self._read_cache(stops, bucket)
        blocks = [block for block in self.plan_blocks(n) if not self._block_cached(block, cached)]
        if len(blocks) > 1:
            logger.info(
                f"Chunking matrix request: {n} stops into {len(blocks)} blocks "
                f"(block size {self.block_size}, parallel: {self.max_parallel_requests})"
            )

        start_time = time.monotonic()
        fetched = self._fetch_blocks(stops, blocks, consider_traffic, departure_time, deadline)
        elapsed = time.monotonic() - start_time
        if blocks:
            logger.info(f"Completed matrix acquisition: {len(blocks)} provider calls in {elapsed:.2f}s")

        grid: list[list[MatrixCell | None]] = [[None] * n for _ in range(n)]
        for (i, j), cell in cached.items():
            grid[i][j] = cell
        for ((src_start, src_end), (dst_start, dst_end)), rows in fetched.items():
            for local_i, global_i in enumerate(range(src_start, src_end)):
                for local_j, global_j in enumerate(range(dst_start, dst_end)):
                    grid[global_i][global_j] = rows[local_i][local_j]
        for i in range(n):
            grid[i][i] = ZERO_CELL

        missing = [(i, j) for i in range(n) for j in range(n) if grid[i][j] is None]
        if missing:
            raise InternalInvariantViolation(
                f"Distance matrix has {len(missing)} unset cells after stitching (first: {missing[0]})."
            )

        matrix = DistanceMatrix(cells=tuple(tuple(row) for row in grid))
        self._write_cache(stops, fetched, bucket)
        return MatrixBuildResult(matrix=matrix, provider_calls=len(blocks), cached_cells=len(cached))

    def _read_cache(self, stops: Sequence[Stop], bucket) -> dict[tuple[int, int], MatrixCell]:
        if self.cache is None:
            return {}
        cached: dict[tuple[int, int], MatrixCell] = {}
        for i, origin in enumerate(stops):
            for j, destination in enumerate(stops):
                if i == j:
                    continue
                cell = self.cache.get(cell_key(origin.location_key, destination.location_key, bucket))
                if cell is not None:
                    cached[(i, j)] = cell
        if cached:
            logger.debug(f"Matrix cache supplied {len(cached)} cells")
        return cached

    @staticmethod
    def _block_cached(block: Block, cached: dict[tuple[int, int], MatrixCell]) -> bool:
        (src_start, src_end), (dst_start, dst_end) = block
        return all(
            i == j or (i, j) in cached
            for i in range(src_start, src_end)
            for j in range(dst_start, dst_end)
        )

    def _write_cache(self, stops: Sequence[Stop], fetched: dict[Block, list[list[MatrixCell]]], bucket) -> None:
        if self.cache is None:
            return
        for ((src_start, src_end), (dst_start, dst_end)), rows in fetched.items():
            for local_i, global_i in enumerate(range(src_start, src_end)):
                for local_j, global_j in enumerate(range(dst_start, dst_end)):
                    if global_i == global_j:
                        continue
                    key = cell_key(stops[global_i].location_key, stops[global_j].location_key, bucket)
                    self.cache.put(key, rows[local_i][local_j])

    def _fetch_block(
        self,
        stops: Sequence[Stop],
        block: Block,
        consider_traffic: bool,
        departure_time: datetime,
        deadline: Deadline,
    ) -> list[list[MatrixCell]]:
        (src_start, src_end), (dst_start, dst_end) = block
        origins = stops[src_start:src_end]
        destinations = stops[dst_start:dst_end]
        rows = call_with_retry(
            lambda: self.provider.fetch_matrix(
                origins,
                destinations,
                departure_time=departure_time,
                consider_traffic=consider_traffic,
            ),
            policy=self.retry_policy,
            deadline=deadline,
            description=f"matrix block [{src_start}:{src_end}] -> [{dst_start}:{dst_end}]",
        )
        if len(rows) != len(origins) or any(len(row) != len(destinations) for row in rows):
            raise ProviderDataError(
                f"Provider returned a malformed matrix block for [{src_start}:{src_end}] -> [{dst_start}:{dst_end}]."
            )
        return rows

    def _fetch_blocks(
        self,
        stops: Sequence[Stop],
        blocks: list[Block],
        consider_traffic: bool,
        departure_time: datetime,
        deadline: Deadline,
    ) -> dict[Block, list[list[MatrixCell]]]:
        if not blocks:
            return {}
        if len(blocks) == 1:
            block = blocks[0]
            return {block: self._fetch_block(stops, block, consider_traffic, departure_time, deadline)}

        def fetch(block: Block) -> list[list[MatrixCell]]:
            try:
                return self._fetch_block(stops, block, consider_traffic, departure_time, deadline)
            except Exception:
                logger.warning(f"Matrix block {block} failed; discarding the whole matrix")
                raise

        try:
            return run_all(
                fetch,
                blocks,
                max_workers=self.max_parallel_requests,
                timeout=deadline.remaining(),
                name="matrix-block",
            )
        except TimeoutError as exc:
            raise OptimizationTimeoutError(
                f"Distance matrix acquisition did not finish within the {deadline.budget:.1f}s budget."
            ) from exc
