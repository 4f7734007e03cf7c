import asyncio
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable, Iterator
import inspect
import logging

from bulkmigrate.audit import AuditLog
from bulkmigrate.errors import AuditLogError, ItemExecutionError, ItemTransformError, SourceError
from bulkmigrate.records import InputRecord
from bulkmigrate.stats import Stats


logger = logging.getLogger(__name__)

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 20

PayloadTransform = Callable[[InputRecord], object]
OperationExecutor = Callable[[object], Awaitable[object] | object]
ProgressCallback = Callable[[Stats], None]


def validate_concurrency(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"concurrency must be an integer, got {value!r}")
    if value < MIN_CONCURRENCY or value > MAX_CONCURRENCY:
        raise ValueError(f"concurrency must be between {MIN_CONCURRENCY} and {MAX_CONCURRENCY}, got {value}")
    return value


class _SharedSource:
    """Hands records to workers one at a time, in source order."""

    def __init__(self, records: Iterable[InputRecord] | AsyncIterable[InputRecord]) -> None:
        self._sync: Iterator[InputRecord] | None = None
        self._async: AsyncIterator[InputRecord] | None = None
        if isinstance(records, AsyncIterable):
            self._async = aiter(records)
        else:
            self._sync = iter(records)
        self._lock = asyncio.Lock()
        self.exhausted = False
        self.error: BaseException | None = None

    async def next(self) -> InputRecord | None:
        async with self._lock:
            if self.exhausted:
                return None
            try:
                if self._async is not None:
                    return await anext(self._async)
                return next(self._sync)
            except (StopIteration, StopAsyncIteration):
                self.exhausted = True
                return None
            except Exception as exc:
                self.exhausted = True
                self.error = exc
                return None

    def stop(self) -> None:
        # Synchronous: takes effect before any other worker resumes.
        self.exhausted = True


class BoundedRunner:
    """Runs ``transform -> executor`` for every record with at most N in flight.

    A fixed pool of N workers pulls from the shared source, so submission keeps
    source order while completions land in any order. Every pulled record gets
    exactly one payload entry in the audit log, whatever the outcome.
    """

    def __init__(
        self,
        transform: PayloadTransform,
        executor: OperationExecutor,
        *,
        concurrency: int,
        audit_log: AuditLog,
        stats: Stats | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.transform = transform
        self.executor = executor
        self.concurrency = validate_concurrency(concurrency)
        self.audit_log = audit_log
        self.stats = stats if stats is not None else Stats()
        self.on_progress = on_progress

    async def run(self, records: Iterable[InputRecord] | AsyncIterable[InputRecord]) -> Stats:
        source = _SharedSource(records)
        workers = [asyncio.create_task(self._worker(source)) for _ in range(self.concurrency)]
        try:
            await asyncio.gather(*workers)
        except BaseException:
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        if source.error is not None:
            if isinstance(source.error, SourceError):
                raise source.error
            raise SourceError(f"record source failed: {source.error}") from source.error
        return self.stats

    async def _worker(self, source: _SharedSource) -> None:
        while True:
            record = await source.next()
            if record is None:
                return
            try:
                await self._process(record)
            except AuditLogError:
                source.stop()
                raise

    async def _process(self, record: InputRecord) -> None:
        payload: object = None
        response: object = None
        error: BaseException | None = None

        self.stats.item_started()
        try:
            try:
                payload = self.transform(record)
            except Exception as exc:
                raise ItemTransformError(str(exc) or type(exc).__name__) from exc
            try:
                response = self.executor(payload)
                if inspect.isawaitable(response):
                    response = await response
            except Exception as exc:
                response = None
                raise ItemExecutionError(str(exc) or type(exc).__name__) from exc
            self.stats.item_succeeded()
        except (ItemTransformError, ItemExecutionError) as exc:
            error = exc
            self.stats.item_failed()
            logger.debug("item failed", extra={"error": str(exc)})
        finally:
            self.stats.item_finished()

        self.audit_log.log_payload(input=record, payload=payload, response=response, error=error)
        if self.on_progress is not None:
            self.on_progress(self.stats)
