"""
Concurrent breadth-first traversal of the follow graph.

A fixed pool of worker tasks pulls identities from the frontier queue,
fetches and persists each profile, and hands follow lists to a single edge
aggregator. The aggregator admits unseen targets to the visited set and
appends them, one level deeper, to an unbounded backlog; a feeder task moves
the backlog into the frontier queue. The aggregator therefore never waits on
a full frontier while workers wait on a full result channel. A completion
tracker counts work that still owes a completion signal; when it drains to
zero the coordinator closes the frontier queue, the result channel and the
backlog, and every task exits.

Counting protocol:
- the seed item is counted before it is enqueued
- a worker counts an edge batch before sending it, while its own item is
  still outstanding, and the aggregator completes the batch once every
  target has been examined
- the aggregator counts a target only when `admit` returns True, before
  appending it to the backlog
- a worker completes its item after fetch, persistence and edge hand-off,
  whether they succeeded or not
"""

import asyncio
import inspect
import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, List, Optional, Sequence, Set
from uuid import uuid4

from pydantic import TypeAdapter, ValidationError

from ...schema.people import ProfileAttributes
from ..core.exceptions import ChannelClosedError, PersistenceError, ProfileParseError
from ..core.protocols import PageFetcher, PersistenceSink
from ..core.types import CrawlStage, EdgeBatch, IdentityKey, TraversalStats, TraversalStatus, WorkItem
from ..frontier.channel import BoundedChannel
from ..frontier.visited import VisitedSet
from ..utils.logging import TraversalLoggerAdapter, get_crawler_logger
from .completion import CompletionTracker
from .error_handler import TraversalErrorHandler

logger = logging.getLogger(__name__)

DEFAULT_FRONTIER_CAPACITY = 10000
DEFAULT_RESULT_CAPACITY = 1000

# Spare threads for blocking calls abandoned by call_timeout
EXECUTOR_THREADS_PER_WORKER = 2

_TARGETS = TypeAdapter(List[str])


class TraversalEngine:
    """
    Bounded-depth, deduplicated, parallel walk over "follows" edges.

    The engine owns no I/O of its own: profiles and follow lists come from
    the page fetcher and every discovery is recorded through the persistence
    sink. Blocking collaborator methods run on a thread pool with two threads
    per worker; coroutine methods are awaited on the event loop.

    A timed-out blocking call cannot be interrupted: its thread stays busy
    until the call returns. Once every pool thread is held by such calls,
    later blocking calls time out while still queued.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        sink: PersistenceSink,
        frontier_capacity: int = DEFAULT_FRONTIER_CAPACITY,
        result_capacity: int = DEFAULT_RESULT_CAPACITY,
        call_timeout: Optional[float] = None,
        error_handler: Optional[TraversalErrorHandler] = None,
    ):
        """
        Initialize the traversal engine.

        Args:
            fetcher: Page fetcher collaborator
            sink: Persistence sink collaborator
            frontier_capacity: Frontier queue bound (0 for unbounded)
            result_capacity: Result channel bound (0 for unbounded)
            call_timeout: Optional timeout for each collaborator call (seconds); includes time queued for a pool thread
            error_handler: Optional error handler (creates one if None)
        """
        self.fetcher = fetcher
        self.sink = sink
        self.frontier_capacity = frontier_capacity
        self.result_capacity = result_capacity
        self.call_timeout = call_timeout
        self.error_handler = error_handler or TraversalErrorHandler()

        self.status = TraversalStatus.IDLE
        self.stats = TraversalStats()

        # Per-run state (created in traverse())
        self.visited = VisitedSet()
        self.tracker = CompletionTracker()
        self.frontier: Optional[BoundedChannel[WorkItem]] = None
        self.results: Optional[BoundedChannel[EdgeBatch]] = None
        self.backlog: Optional[BoundedChannel[WorkItem]] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._log = TraversalLoggerAdapter(get_crawler_logger(__name__), "idle")

    async def traverse(self, max_depth: int, root_key: IdentityKey, num_workers: int) -> TraversalStats:
        """
        Walk the graph from `root_key` and return once every reachable identity is processed.

        Args:
            max_depth: Deepest level whose identities are persisted; edges are explored below it
            root_key: Identity to start from
            num_workers: Number of parallel workers

        Returns:
            TraversalStats for the run

        Raises:
            ValueError: If arguments are out of range
            RuntimeError: If the engine is already running
        """
        if max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {max_depth}")
        if num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {num_workers}")
        if not root_key:
            raise ValueError("root_key must be a non-empty identity key")
        if self.status in (TraversalStatus.RUNNING, TraversalStatus.DRAINING):
            raise RuntimeError("Traversal already in progress")

        run_id = uuid4().hex[:8]
        self.stats = TraversalStats()
        self.stats.mark_started(run_id)
        self.visited = VisitedSet()
        self.tracker = CompletionTracker()
        self.frontier = BoundedChannel(self.frontier_capacity, name="frontier")
        self.results = BoundedChannel(self.result_capacity, name="results")
        self.backlog = BoundedChannel(0, name="backlog")
        self._executor = ThreadPoolExecutor(
            max_workers=num_workers * EXECUTOR_THREADS_PER_WORKER, thread_name_prefix=f"traversal-{run_id}"
        )
        self._log = TraversalLoggerAdapter(get_crawler_logger(__name__), run_id)
        self.status = TraversalStatus.RUNNING

        logger.info(
            f"Starting traversal from {root_key}: max_depth={max_depth}, workers={num_workers}",
            extra={"run_id": run_id, "root": root_key, "max_depth": max_depth, "workers": num_workers},
        )

        tasks: List[asyncio.Task[None]] = []
        try:
            self.visited.admit(root_key)
            self.tracker.add(1)
            await self.frontier.put(WorkItem(key=root_key, depth=0))

            for worker_id in range(num_workers):
                tasks.append(
                    asyncio.create_task(self._worker(worker_id, max_depth), name=f"traversal-worker-{worker_id}")
                )
            tasks.append(asyncio.create_task(self._aggregate(), name="traversal-aggregator"))
            tasks.append(asyncio.create_task(self._feed_frontier(), name="traversal-feeder"))

            await self._wait_for_completion(tasks)

            self.status = TraversalStatus.DRAINING
            if not (self.frontier.empty() and self.results.empty() and self.backlog.empty()):
                logger.error(
                    "Completion reached with buffered work",
                    extra={
                        "frontier_depth": self.frontier.qsize(),
                        "result_depth": self.results.qsize(),
                        "backlog_depth": self.backlog.qsize(),
                    },
                )
            await self.frontier.close()
            await self.results.close()
            await self.backlog.close()
            await asyncio.gather(*tasks)

        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)

            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
            self.status = TraversalStatus.TERMINATED
            self.stats.mark_finished()

        logger.info(
            f"Traversal finished: {self.stats.identities_persisted} identities persisted, "
            f"{self.stats.failures} failures in {self.stats.duration_seconds:.1f}s",
            extra=self.stats.get_summary(),
        )
        return self.stats

    async def _wait_for_completion(self, tasks: Sequence["asyncio.Task[None]"]) -> None:
        """Wait for the tracker to drain, failing fast if a pool task dies first"""
        drained = asyncio.create_task(self.tracker.wait(), name="traversal-completion")
        pending: Set["asyncio.Future[Any]"] = {drained, *tasks}
        try:
            while not drained.done():
                finished, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in finished:
                    if task is drained:
                        continue
                    error = task.exception()
                    raise RuntimeError(f"{task.get_name()} exited before traversal completed") from error
        finally:
            if not drained.done():
                drained.cancel()

    async def _worker(self, worker_id: int, max_depth: int) -> None:
        """Process frontier items until the frontier queue is closed"""
        assert self.frontier is not None

        async for item in self.frontier:
            try:
                await self._process_item(worker_id, item, max_depth)
            finally:
                self.stats.items_processed += 1
                self.tracker.done()

        logger.debug(f"Worker {worker_id} exiting")

    async def _process_item(self, worker_id: int, item: WorkItem, max_depth: int) -> None:
        """Fetch, persist and (below max depth) expand one identity"""
        assert self.results is not None

        self._log.log_item_started(item.key, item.depth, worker_id)
        if item.depth > self.stats.max_depth_reached:
            self.stats.max_depth_reached = item.depth

        try:
            attrs = self._validate_profile(item.key, await self._call(self.fetcher.fetch_profile, item.key))
        except Exception as e:
            self._abandon(e, item, CrawlStage.FETCH_PROFILE, worker_id)
            return

        try:
            internal_id = await self._call(self.sink.persist_identity, item.key, attrs)
        except Exception as e:
            self._abandon(e, item, CrawlStage.PERSIST_IDENTITY, worker_id)
            return

        if not isinstance(internal_id, int) or internal_id < 0:
            self._abandon(
                PersistenceError(f"Sink rejected {item.key} (internal id {internal_id!r})"),
                item,
                CrawlStage.PERSIST_IDENTITY,
                worker_id,
            )
            return

        self.stats.identities_persisted += 1
        self._log.log_identity_persisted(item.key, internal_id, item.depth)

        if item.depth >= max_depth:
            return

        try:
            targets = self._validate_targets(item.key, await self._call(self.fetcher.fetch_edges, item.key))
        except Exception as e:
            self._abandon(e, item, CrawlStage.FETCH_EDGES, worker_id)
            return

        self.stats.identities_explored += 1

        try:
            await self._call(self.sink.persist_edges, internal_id, targets)
        except Exception as e:
            classification = self.error_handler.handle_error(e, item.key, CrawlStage.PERSIST_EDGES, worker_id)
            self.stats.record_error(classification.error_type)

        self._log.log_edges_discovered(item.key, item.depth, len(targets), worker_id=worker_id)
        if not targets:
            return

        batch = EdgeBatch(
            source_key=item.key,
            source_internal_id=internal_id,
            parent_depth=item.depth,
            targets=targets,
        )

        # The batch is counted while this item is still outstanding
        self.tracker.add(1)
        try:
            await self.results.put(batch)
        except ChannelClosedError:
            self.tracker.done()
            raise

    async def _aggregate(self) -> None:
        """Admit unseen targets and append them to the backlog one level deeper"""
        assert self.results is not None and self.backlog is not None

        async for batch in self.results:
            try:
                admitted = 0
                duplicates = 0
                for target in batch.targets:
                    if not self.visited.admit(target):
                        duplicates += 1
                        continue

                    self.tracker.add(1)
                    admitted += 1
                    await self.backlog.put(WorkItem(key=target, depth=batch.parent_depth + 1))

                self.stats.batches_aggregated += 1
                self.stats.edges_discovered += len(batch.targets)
                self.stats.identities_admitted += admitted
                self.stats.duplicate_targets += duplicates
                self._log.log_batch_aggregated(batch.source_key, admitted, duplicates)
            finally:
                self.tracker.done()

        logger.debug("Edge aggregator exiting")

    async def _feed_frontier(self) -> None:
        """Move admitted items from the backlog into the frontier, waiting while it is full"""
        assert self.backlog is not None and self.frontier is not None

        async for item in self.backlog:
            await self.frontier.put(item)

        logger.debug("Frontier feeder exiting")

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        """Invoke a collaborator method, off the event loop if it blocks"""
        if inspect.iscoroutinefunction(func):
            call = func(*args)
        else:
            loop = asyncio.get_running_loop()
            call = loop.run_in_executor(self._executor, partial(func, *args))

        if self.call_timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self.call_timeout)

    def _abandon(self, error: Exception, item: WorkItem, stage: CrawlStage, worker_id: int) -> None:
        classification = self.error_handler.handle_error(error, item.key, stage, worker_id)
        self.stats.record_error(classification.error_type)
        self._log.log_identity_abandoned(
            item.key, stage.value, classification.error_type.value, depth=item.depth, worker_id=worker_id
        )

    @staticmethod
    def _validate_profile(key: IdentityKey, value: Any) -> ProfileAttributes:
        if isinstance(value, ProfileAttributes):
            return value
        if isinstance(value, Mapping):
            try:
                return ProfileAttributes.model_validate(value)
            except ValidationError as e:
                raise ProfileParseError(key, f"invalid profile attributes ({e.error_count()} errors)", e)
        raise ProfileParseError(key, f"expected profile attributes, got {type(value).__name__}")

    @staticmethod
    def _validate_targets(key: IdentityKey, value: Any) -> List[IdentityKey]:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            raise ProfileParseError(key, f"expected a sequence of handles, got {type(value).__name__}")
        try:
            targets = _TARGETS.validate_python(list(value))
        except ValidationError as e:
            raise ProfileParseError(key, f"invalid follow list ({e.error_count()} errors)", e)
        return [target for target in targets if target]

    def get_stats(self) -> dict:
        """Get comprehensive statistics"""
        return {
            **self.stats.get_summary(),
            "visited": len(self.visited),
            "outstanding": self.tracker.outstanding,
            "tracker": dict(self.tracker.stats),
            "frontier": self.frontier.get_stats() if self.frontier else None,
            "results": self.results.get_stats() if self.results else None,
            "backlog": self.backlog.get_stats() if self.backlog else None,
            "errors": self.error_handler.get_stats(),
        }


def run(
    max_depth: int,
    root_key: IdentityKey,
    num_workers: int,
    fetcher: PageFetcher,
    sink: PersistenceSink,
    **engine_options: Any,
) -> TraversalStats:
    """
    Run a traversal to completion on a fresh event loop.

    Args:
        max_depth: Deepest level whose identities are persisted
        root_key: Identity to start from
        num_workers: Number of parallel workers
        fetcher: Page fetcher collaborator
        sink: Persistence sink collaborator
        **engine_options: Extra TraversalEngine options (capacities, call_timeout)

    Returns:
        TraversalStats for the run
    """
    engine = TraversalEngine(fetcher, sink, **engine_options)
    return asyncio.run(engine.traverse(max_depth, root_key, num_workers))
