"""Batch fan-out/fan-in with per-item failure isolation."""

from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from temporalfacts.config import EngineConfig
from temporalfacts.config.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Sequence

log = getLogger(__name__)

type ItemId = Any
type Operation[TItem, TValue] = Callable[[TItem], TValue | Awaitable[TValue]]


@dataclass(frozen=True, slots=True)
class ItemError:
    type: str
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> ItemError:
        return cls(type=type(exc).__name__, message=str(exc))


@dataclass(frozen=True, slots=True)
class BatchResult[TValue]:
    item_id: ItemId
    value: TValue | None = None
    error: ItemError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def default_item_id(item: object, index: int) -> ItemId:
    return getattr(item, "id", index)


def summarize(results: Sequence[BatchResult[Any]]) -> tuple[int, int]:
    """Return ``(succeeded, failed)`` counts."""

    failed = sum(1 for result in results if not result.ok)
    return len(results) - failed, failed


class BatchCoordinator:
    """Apply one operation to many items, sequentially or on a bounded pool.

    Results always come back in input order, one per item. An exception raised
    for one item is captured in that item's result and never affects the
    others. Each operation is expected to open its own unit of work.
    """

    def __init__(self, max_workers: int = 4, item_timeout: float | None = None) -> None:
        if max_workers < 1:
            raise ConfigurationError("max_workers must be positive")
        if item_timeout is not None and item_timeout <= 0:
            raise ConfigurationError("item_timeout must be positive when set")
        self.max_workers = max_workers
        self.item_timeout = item_timeout

    @classmethod
    def from_config(cls, config: EngineConfig) -> BatchCoordinator:
        return cls(max_workers=config.max_workers, item_timeout=config.item_timeout_seconds)

    def process[TItem, TValue](
        self,
        items: Iterable[TItem],
        operation: Operation[TItem, TValue],
        *,
        item_id: Callable[[TItem, int], ItemId] = default_item_id,
    ) -> list[BatchResult[TValue]]:
        started = time.perf_counter()
        results: list[BatchResult[TValue]] = []
        for index, item in enumerate(items):
            identifier = item_id(item, index)
            try:
                value = operation(item)
                if inspect.isawaitable(value):
                    value = asyncio.run(self._bounded(cast("Awaitable[TValue]", value)))
            except Exception as exc:  # noqa: BLE001
                results.append(self._failure(identifier, exc))
                continue
            results.append(BatchResult(item_id=identifier, value=cast("TValue", value)))
        self._log_summary("sequential", results, started)
        return results

    def process_parallel[TItem, TValue](
        self,
        items: Iterable[TItem],
        operation: Operation[TItem, TValue],
        *,
        item_id: Callable[[TItem, int], ItemId] = default_item_id,
    ) -> list[BatchResult[TValue]]:
        started = time.perf_counter()
        results = asyncio.run(self._gather(list(items), operation, item_id))
        self._log_summary("parallel", results, started)
        return results

    async def _gather[TItem, TValue](
        self,
        items: list[TItem],
        operation: Operation[TItem, TValue],
        item_id: Callable[[TItem, int], ItemId],
    ) -> list[BatchResult[TValue]]:
        semaphore = asyncio.Semaphore(self.max_workers)

        async def run_one(index: int, item: TItem) -> BatchResult[TValue]:
            identifier = item_id(item, index)
            async with semaphore:
                try:
                    value = await self._bounded(self._invoke(operation, item))
                except Exception as exc:  # noqa: BLE001
                    return self._failure(identifier, exc)
            return BatchResult(item_id=identifier, value=value)

        return list(
            await asyncio.gather(*(run_one(index, item) for index, item in enumerate(items)))
        )

    async def _invoke[TItem, TValue](
        self,
        operation: Operation[TItem, TValue],
        item: TItem,
    ) -> TValue:
        if inspect.iscoroutinefunction(operation):
            return await cast("Callable[[TItem], Awaitable[TValue]]", operation)(item)
        value = await asyncio.to_thread(operation, item)
        if inspect.isawaitable(value):
            return await cast("Awaitable[TValue]", value)
        return cast("TValue", value)

    async def _bounded[TValue](self, awaitable: Awaitable[TValue]) -> TValue:
        if self.item_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.item_timeout)

    def _failure(self, identifier: ItemId, exc: Exception) -> BatchResult[Any]:
        if isinstance(exc, TimeoutError):
            error = ItemError(
                type="TimeoutError", message=f"item exceeded {self.item_timeout} seconds"
            )
        else:
            error = ItemError.from_exception(exc)
        log.warning("Batch item %s failed: %s: %s", identifier, error.type, error.message)
        return BatchResult(item_id=identifier, error=error)

    def _log_summary(
        self,
        mode: str,
        results: Sequence[BatchResult[Any]],
        started: float,
    ) -> None:
        succeeded, failed = summarize(results)
        log.info(
            "Processed %d items (%s): %d succeeded, %d failed in %.2fs",
            len(results),
            mode,
            succeeded,
            failed,
            time.perf_counter() - started,
        )
