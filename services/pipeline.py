#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Bounded-concurrency fan-out/fan-in pipeline for Playlist Digest.

One asyncio task is launched per work item. A counting semaphore bounds how
many of them hold a slot (and so have Gemini calls in flight) at any instant.
Every task puts exactly one tagged outcome on a result channel sized to the
number of items, and a collector drains the channel concurrently, handing
successful payloads to the sink.
"""

import asyncio
import functools
from contextlib import asynccontextmanager
from typing import (AsyncIterator, Awaitable, Callable, List, Optional,
                    Sequence)

from config import COLLISION_POLICIES
from exceptions import InvalidInputError, SinkWriteError
from models import PipelineResult, ReferenceDocument, TaskOutcome, WorkItem
from utils import short_error
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)

# Processing function: (item, reference documents) -> final text
ProcessFunc = Callable[[WorkItem, Sequence[ReferenceDocument]], Awaitable[str]]


class ConcurrencyLimiter:
    """Counting semaphore admitting at most `capacity` concurrent slot holders."""

    def __init__(self, capacity: int):
        if not isinstance(capacity, int) or capacity < 1:
            raise InvalidInputError(f"Concurrency limit must be a positive integer, got {capacity!r}")
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._in_flight = 0
        self._peak_in_flight = 0

    async def acquire(self) -> None:
        """Suspend until a slot is free, then hold it."""
        await self._semaphore.acquire()
        self._in_flight += 1
        if self._in_flight > self._peak_in_flight:
            self._peak_in_flight = self._in_flight

    def release(self) -> None:
        """Return a held slot."""
        if self._in_flight <= 0:
            raise RuntimeError("ConcurrencyLimiter.release() called without a held slot")
        self._in_flight -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one slot for the duration of the block, released on every exit path."""
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def available(self) -> int:
        return self.capacity - self._in_flight

    @property
    def peak_in_flight(self) -> int:
        return self._peak_in_flight


class CompletionSignal:
    """Wait-group style counter of outstanding worker tasks."""

    def __init__(self):
        self._outstanding = 0
        self._all_done = asyncio.Event()
        self._all_done.set()

    def add(self, count: int = 1) -> None:
        if count < 0:
            raise ValueError("CompletionSignal.add() count must be non-negative")
        self._outstanding += count
        if self._outstanding > 0:
            self._all_done.clear()

    def done(self) -> None:
        if self._outstanding <= 0:
            raise RuntimeError("CompletionSignal.done() called more times than add()")
        self._outstanding -= 1
        if self._outstanding == 0:
            self._all_done.set()

    async def wait(self) -> None:
        """Suspend until every added task has called done()."""
        await self._all_done.wait()

    @property
    def outstanding(self) -> int:
        return self._outstanding


class ResultChannel:
    """Closable queue of task outcomes.

    Capacity is the number of work items plus room for the close marker, so
    producers never wait on the collector.
    """

    _CLOSED = object()

    def __init__(self, capacity: int):
        self.capacity = max(1, capacity)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=self.capacity + 1)
        self._closed = False

    async def put(self, outcome: TaskOutcome) -> None:
        if self._closed:
            raise RuntimeError("Cannot put on a closed ResultChannel")
        await self._queue.put(outcome)

    def close(self) -> None:
        """Mark the end of the stream; outcomes already queued are still delivered."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def __aiter__(self) -> AsyncIterator[TaskOutcome]:
        while True:
            outcome = await self._queue.get()
            if outcome is self._CLOSED:
                return
            yield outcome


async def run_worker(item: WorkItem, references: Sequence[ReferenceDocument],
                     process: ProcessFunc, limiter: ConcurrencyLimiter,
                     channel: ResultChannel, completion: CompletionSignal) -> None:
    """Process one work item and emit exactly one outcome.

    Order: slot acquired, processing calls, slot released, outcome emitted,
    completion signaled. A processing failure becomes an error outcome.
    """
    log = logger.bind(video_id=item.video_id, title=item.title)
    try:
        try:
            async with limiter.slot():
                log.debug("Slot acquired, processing video")
                payload = await process(item, references)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error(f"Failed to process video {item.video_id}: {e}", error=short_error(e), exc_info=False)
            await channel.put(TaskOutcome.err(item, e))
        else:
            log.info(f"Processed video {item.video_id}", response_length=len(payload))
            await channel.put(TaskOutcome.ok(item, payload))
    finally:
        completion.done()


class Coordinator:
    """Launches one worker per item and closes the channel once all are done."""

    def __init__(self, process: ProcessFunc, limiter: ConcurrencyLimiter):
        self.process = process
        self.limiter = limiter

    async def dispatch(self, items: Sequence[WorkItem], references: Sequence[ReferenceDocument],
                       channel: ResultChannel,
                       on_dispatched: Optional[Callable[[int], None]] = None) -> None:
        """Launch every worker, then wait for all of them and close the channel.

        `on_dispatched` is called with the task count once every worker has
        been created and before any of them has run.
        """
        completion = CompletionSignal()
        tasks: List[asyncio.Task] = []
        try:
            for item in items:
                # Count the task before it exists so wait() cannot see zero early
                completion.add()
                tasks.append(asyncio.create_task(
                    run_worker(item, references, self.process, self.limiter, channel, completion),
                    name=f"digest_{item.video_id}"
                ))
            logger.info(f"Dispatched {len(tasks)} worker task(s).", task_count=len(tasks),
                        concurrency_limit=self.limiter.capacity)
            if on_dispatched is not None:
                on_dispatched(len(tasks))

            await completion.wait()
            # Every task has signaled completion; reap them
            await asyncio.gather(*tasks)
        finally:
            channel.close()


class ResultCollector:
    """Drains the result channel into a PipelineResult and writes payloads to the sink."""

    def __init__(self, sink=None, collision_policy: str = "suffix"):
        if collision_policy not in COLLISION_POLICIES:
            raise InvalidInputError(f"Unknown collision policy: {collision_policy!r}")
        self.sink = sink
        self.collision_policy = collision_policy

    @staticmethod
    def unique_key(key: str, taken) -> str:
        """Return `key`, or `key (n)` with the smallest n >= 2 not in `taken`."""
        if key not in taken:
            return key
        n = 2
        while f"{key} ({n})" in taken:
            n += 1
        return f"{key} ({n})"

    async def drain(self, channel: ResultChannel) -> PipelineResult:
        result = PipelineResult()
        loop = asyncio.get_running_loop()

        async for outcome in channel:
            if not outcome.succeeded:
                key = self.unique_key(outcome.key, result.failures)
                result.failures[key] = short_error(outcome.error)
                continue

            if self.collision_policy == "overwrite":
                key = outcome.key
            else:
                key = self.unique_key(outcome.key, result.results)
            if key != outcome.key:
                logger.warning(f"Duplicate result key '{outcome.key}', storing as '{key}'",
                               key=outcome.key, stored_as=key, video_id=outcome.item.video_id)
            result.results[key] = outcome.payload

            if self.sink is None:
                continue
            try:
                path = await loop.run_in_executor(None, functools.partial(self.sink.write, key, outcome.payload))
            except SinkWriteError as e:
                logger.error(f"Error writing result to file: {e}", key=key, error=str(e), exc_info=False)
                result.write_errors[key] = short_error(e)
            else:
                result.written_files[key] = str(path)

        logger.info(
            f"Collected {len(result.results)} result(s), {len(result.failures)} failure(s).",
            results=len(result.results),
            failures=len(result.failures),
            write_errors=len(result.write_errors)
        )
        return result


class DigestPipeline:
    """Wires limiter, coordinator, channel and collector for one run."""

    def __init__(self, process: ProcessFunc, concurrency_limit: int, sink=None,
                 collision_policy: Optional[str] = None):
        self.limiter = ConcurrencyLimiter(concurrency_limit)
        self.coordinator = Coordinator(process, self.limiter)
        self.collector = ResultCollector(
            sink=sink,
            collision_policy=collision_policy or getattr(sink, "collision_policy", "suffix")
        )

    async def run(self, items: Sequence[WorkItem],
                  references: Sequence[ReferenceDocument] = (),
                  on_dispatched: Optional[Callable[[int], None]] = None) -> PipelineResult:
        """Process every item with bounded concurrency and collect the outcomes.

        The collector starts before dispatch and runs alongside the workers.
        `on_dispatched` fires once all workers are launched (see Coordinator.dispatch).
        """
        references = tuple(references)
        channel = ResultChannel(len(items))
        drain_task = asyncio.create_task(self.collector.drain(channel), name="digest_collector")
        try:
            await self.coordinator.dispatch(items, references, channel, on_dispatched=on_dispatched)
        except BaseException:
            drain_task.cancel()
            raise

        result = await drain_task
        result.peak_in_flight = self.limiter.peak_in_flight
        return result
