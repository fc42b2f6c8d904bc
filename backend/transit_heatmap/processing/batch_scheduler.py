"""
Concurrent Batch Fetching of Travel Times

This module drives the sample lattice through the Distance Matrix API with a
fixed pool of concurrent workers.

Key Features:
-------------
- Contiguous partition of the lattice into service-sized batches (25 origins)
- One work queue of batches and one outcome queue, no other shared state
- One `DistanceMatrixClient` per worker; the blocking HTTP call runs in a
  thread pool, so it is the only point where a worker waits on the network
- Progress tracking via `tqdm` and cumulative log lines
- Fail-fast: the first failed batch (client creation, transport, rejected
  request, row count mismatch) cancels the remaining workers and is re-raised
- A worker cancelled mid-call closes its client only once that call returns;
  the calling thread is not interrupted

Result order:
-------------
Outcomes arrive in whatever order the workers finish; they are buffered by
batch index and concatenated, so the returned results follow lattice order.

Main Components:
----------------
- `partition_batches(...)`: Splits the lattice into contiguous batches.
- `BatchScheduler`: Owns the pool configuration and runs a fetch.

Example:
--------
    scheduler = BatchScheduler(lambda: DistanceMatrixClient(key), destination, options, step)
    results = scheduler.fetch(points)
"""

import asyncio
import logging
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from tqdm import tqdm

from transit_heatmap.core.config import MAX_ELEMENTS, WORKERS
from transit_heatmap.core.data_types import Coordinate, Result, StepAngle
from transit_heatmap.core.exceptions import ConfigurationError
from transit_heatmap.core.logger import clear_batch_context, set_batch_context
from transit_heatmap.requests.build_request import create_distance_matrix_request
from transit_heatmap.requests.parse_response import parse_distance_matrix_response
from transit_heatmap.requests.travel_options import TravelOptions

logger = logging.getLogger(__name__)

# Anything with `distance_matrix(params) -> dict`; `close()` is optional.
ClientFactory = Callable[[], Any]
WorkItem = Optional[Tuple[int, List[Coordinate]]]


@dataclass
class BatchOutcome:
    """
    What a worker reports back for one batch.

    Attributes:
        index (int): Batch position in the partition, -1 if no batch was taken.
        size (int): Number of origins in the batch.
        results (List[Result]): Accepted results, empty on failure.
        error (Optional[Exception]): Set when the batch or the worker failed.
    """
    index: int
    size: int
    results: List[Result] = field(default_factory=list)
    error: Optional[Exception] = None


def partition_batches(points: Sequence[Coordinate], max_batch_size: int = MAX_ELEMENTS) -> List[List[Coordinate]]:
    """
    Splits the lattice into contiguous batches of at most `max_batch_size` points.

    Args:
        points (Sequence[Coordinate]): Sample points in lattice order.
        max_batch_size (int): Service limit on origins per request.

    Returns:
        List[List[Coordinate]]: Batches in lattice order; e.g. 60 points -> 25, 25, 10.
    """
    if max_batch_size < 1:
        raise ConfigurationError(f"Batch size must be positive, got {max_batch_size}")
    return [list(points[i:i + max_batch_size]) for i in range(0, len(points), max_batch_size)]


class BatchScheduler:
    """
    Fetches travel times for a lattice with a bounded pool of workers.

    Args:
        client_factory (ClientFactory): Creates one client per worker.
        destination (Coordinate): The fixed heatmap destination.
        options (TravelOptions): Request options applied to every batch.
        step (Optional[StepAngle]): Lattice step; results carry cell bounds when set.
        max_batch_size (int): Origins per request (service limit 25).
        worker_count (int): Number of concurrent workers.
        show_progress (bool): Display a progress bar on stderr.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        destination: Coordinate,
        options: TravelOptions,
        step: Optional[StepAngle] = None,
        max_batch_size: int = MAX_ELEMENTS,
        worker_count: int = WORKERS,
        show_progress: bool = True
    ) -> None:
        if max_batch_size < 1 or max_batch_size > MAX_ELEMENTS:
            raise ConfigurationError(f"Batch size must be between 1 and {MAX_ELEMENTS}, got {max_batch_size}")
        if worker_count < 1:
            raise ConfigurationError(f"Worker count must be positive, got {worker_count}")

        self.client_factory = client_factory
        self.destination = destination
        self.options = options
        self.step = step
        self.max_batch_size = max_batch_size
        self.worker_count = worker_count
        self.show_progress = show_progress

    def fetch(self, points: Sequence[Coordinate]) -> List[Result]:
        """Synchronous entry point; runs `fetch_async` in a fresh event loop."""
        return asyncio.run(self.fetch_async(points))

    async def fetch_async(self, points: Sequence[Coordinate]) -> List[Result]:
        """
        Fetches all batches of the lattice and returns the accepted results.

        Exactly one outcome is drained per dispatched batch. Progress is
        derived from the drained outcomes only and never affects the result.

        Args:
            points (Sequence[Coordinate]): Sample points in lattice order.

        Returns:
            List[Result]: Results in lattice order; skipped rows are absent.

        Raises:
            HeatmapError: The first error reported by any worker (fail-fast).
        """
        batches = partition_batches(points, self.max_batch_size)
        if not batches:
            logger.info("No sample points to fetch.")
            return []

        work_queue: "asyncio.Queue[WorkItem]" = asyncio.Queue()
        outcome_queue: "asyncio.Queue[BatchOutcome]" = asyncio.Queue()

        for index, batch in enumerate(batches):
            work_queue.put_nowait((index, batch))

        worker_count = min(self.worker_count, len(batches))
        for _ in range(worker_count):
            work_queue.put_nowait(None)

        logger.info(
            f"Fetching {len(points)} origins in {len(batches)} batches with {worker_count} workers."
        )

        executor = ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="distance-matrix")
        workers = [
            asyncio.create_task(self._worker(n, work_queue, outcome_queue, executor))
            for n in range(worker_count)
        ]

        collected: Dict[int, List[Result]] = {}
        fetched = 0
        bar = tqdm(
            total=len(points),
            desc="Fetching travel times",
            unit="origins",
            dynamic_ncols=True,
            disable=not self.show_progress,
            file=sys.stderr
        )

        try:
            for _ in range(len(batches)):
                outcome = await outcome_queue.get()
                if outcome.error is not None:
                    logger.error(f"Aborting fetch: batch {outcome.index} failed with {outcome.error!r}")
                    raise outcome.error

                collected[outcome.index] = outcome.results
                fetched += outcome.size
                bar.update(outcome.size)
                logger.info(f"{fetched}/{len(points)} origins fetched")
        finally:
            bar.close()
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            executor.shutdown(wait=False, cancel_futures=True)

        results = [result for index in range(len(batches)) for result in collected[index]]
        logger.info(f"Collected {len(results)} results for {len(points)} origins.")
        return results

    async def _worker(
        self,
        worker_id: int,
        work_queue: "asyncio.Queue[WorkItem]",
        outcome_queue: "asyncio.Queue[BatchOutcome]",
        executor: ThreadPoolExecutor
    ) -> None:
        """
        Consumes batches until it meets a sentinel or a batch fails.

        Any exception is reported as a failed `BatchOutcome` instead of being
        raised here; the dispatcher decides to abort the run.
        """
        try:
            client = self.client_factory()
        except Exception as e:
            logger.error(f"Worker {worker_id} could not create a client: {e}")
            await outcome_queue.put(BatchOutcome(index=-1, size=0, error=e))
            return

        in_flight: Optional[Future] = None
        try:
            while True:
                item = await work_queue.get()
                if item is None:
                    return

                index, batch = item
                set_batch_context(index)
                try:
                    params = create_distance_matrix_request(
                        batch, self.destination, self.options, self.max_batch_size
                    )
                    in_flight = executor.submit(client.distance_matrix, params)
                    response = await asyncio.wrap_future(in_flight)
                    results = parse_distance_matrix_response(response, batch, self.step, index)
                except Exception as e:
                    logger.error(f"Worker {worker_id} failed on batch {index}: {e}")
                    await outcome_queue.put(BatchOutcome(index=index, size=len(batch), error=e))
                    return
                finally:
                    clear_batch_context()

                logger.debug(f"Worker {worker_id} finished batch {index}: {len(results)}/{len(batch)} rows accepted.")
                await outcome_queue.put(BatchOutcome(index=index, size=len(batch), results=results))
        finally:
            close = getattr(client, "close", None)
            if callable(close):
                if in_flight is not None and not in_flight.done():
                    # cancelled mid-call: the thread still uses the session
                    in_flight.add_done_callback(lambda _: close())
                else:
                    close()
