"""Controller loop: watch records, schedule keys, run the handler per key."""

from __future__ import annotations

import asyncio

from loguru import logger

from cce_operator.api.types import FINALIZER, ClusterConfig, split_key
from cce_operator.exceptions import NotFoundError
from cce_operator.store.base import RecordStore, update_with_retry

from .context import Result
from .handler import Handler
from .queue import WorkQueue

DEFAULT_WORKERS = 4

log = logger.bind(component="controller")


class Controller:
    """Runs ``Handler`` for every changed CCEClusterConfig record.

    Each key is processed by one worker at a time. Failures are requeued with
    per-key exponential backoff, successes reset it. Deletion is gated by the
    ``cce.pandaria.io/cce-operator`` finalizer, removed once teardown is done.

    Example:
        controller = Controller(store, handler, workers=4)
        await controller.run(stop_event)
    """

    def __init__(
        self,
        store: RecordStore,
        handler: Handler,
        *,
        workers: int = DEFAULT_WORKERS,
        queue: WorkQueue | None = None,
    ) -> None:
        self.store = store
        self.handler = handler
        self.workers = workers
        self.queue = queue if queue is not None else WorkQueue()

    async def run(self, stop: asyncio.Event) -> None:
        log.info("Starting controller with {n} workers", n=self.workers)
        watcher = asyncio.create_task(self._watch(), name="cce-operator-watch")
        workers = [
            asyncio.create_task(self._worker(i), name=f"cce-operator-worker-{i}")
            for i in range(self.workers)
        ]
        try:
            await stop.wait()
        finally:
            log.info("Shutting down controller")
            self.queue.shutdown()
            watcher.cancel()
            await asyncio.gather(watcher, *workers, return_exceptions=True)
            await self.handler.drivers.close()

    async def _watch(self) -> None:
        async for key in self.store.watch():
            self.queue.enqueue(key)

    async def _worker(self, index: int) -> None:
        wlog = log.bind(worker=index)
        while (key := await self.queue.get()) is not None:
            try:
                await self.process(key)
            except Exception as e:
                delay = self.queue.enqueue_rate_limited(key)
                wlog.warning(
                    "Reconcile of {key} failed, retrying in {delay:.0f}s: {err}",
                    key=key, delay=delay, err=e,
                )
            else:
                self.queue.forget(key)
            finally:
                self.queue.done(key)

    async def process(self, key: str) -> Result | None:
        """Reconcile one key. Returns None when the record no longer exists."""
        namespace, name = split_key(key)
        try:
            config = await self.store.get(namespace, name)
        except NotFoundError:
            log.debug("Record {key} is gone", key=key)
            return None

        if config.deleting:
            return await self._remove(config)

        if FINALIZER not in config.metadata.finalizers:
            config = await update_with_retry(self.store, config, _add_finalizer, status=False)

        result = await self.handler.reconcile(config)
        self._schedule(key, result)
        return result

    async def _remove(self, config: ClusterConfig) -> Result | None:
        if FINALIZER not in config.metadata.finalizers:
            return None

        result = await self.handler.on_remove(config)
        if result.done:
            await update_with_retry(self.store, result.record, _remove_finalizer, status=False)
            log.info("Removed finalizer from {key}", key=config.key)
        else:
            self._schedule(config.key, result)
        return result

    def _schedule(self, key: str, result: Result) -> None:
        if result.requeue_after is not None:
            self.queue.enqueue_after(key, result.requeue_after)


def _add_finalizer(config: ClusterConfig) -> ClusterConfig:
    if FINALIZER in config.metadata.finalizers:
        return config
    return config.with_metadata(finalizers=(*config.metadata.finalizers, FINALIZER))


def _remove_finalizer(config: ClusterConfig) -> ClusterConfig:
    return config.with_metadata(
        finalizers=tuple(f for f in config.metadata.finalizers if f != FINALIZER)
    )
