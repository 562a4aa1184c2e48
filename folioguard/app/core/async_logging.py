"""Non-blocking log delivery for the security event stream.

Security events are emitted from inside request handling. This module queues
records in memory and hands them to the real output handlers from a daemon
thread, so a slow or broken log destination never delays an admission
decision.
"""

import atexit
import logging
import queue
import threading
import time
from typing import List, Optional


class AsyncLogHandler(logging.Handler):
    """Handler that only enqueues records.

    If the queue is full the record is dropped rather than blocking the
    caller.
    """

    def __init__(self, max_queue_size: int = 10000):
        super().__init__()
        self.log_queue: queue.Queue[logging.LogRecord] = queue.Queue(
            maxsize=max_queue_size
        )
        self.dropped = 0
        self._shutdown = False

    def emit(self, record: logging.LogRecord) -> None:
        if self._shutdown:
            return
        try:
            self.log_queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1

    def shutdown(self) -> None:
        self._shutdown = True


class BackgroundLogProcessor:
    """Drains an AsyncLogHandler queue into target handlers on a daemon thread.

    Attributes:
        handler: The AsyncLogHandler to read from
        targets: Handlers that perform the actual I/O
        flush_interval: Seconds between explicit flushes
        batch_size: Maximum records to process per iteration
    """

    def __init__(
        self,
        handler: AsyncLogHandler,
        targets: List[logging.Handler],
        flush_interval: float = 1.0,
        batch_size: int = 100,
    ):
        self.handler = handler
        self.targets = targets
        self.flush_interval = flush_interval
        self.batch_size = batch_size
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._process_loop, name="security-log-writer", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None

    def _process_loop(self) -> None:
        last_flush = time.time()

        while not self._stop.is_set():
            batch: List[logging.LogRecord] = []
            for _ in range(self.batch_size):
                try:
                    batch.append(self.handler.log_queue.get_nowait())
                except queue.Empty:
                    break

            for record in batch:
                self._emit_to_targets(record)

            if time.time() - last_flush > self.flush_interval:
                self._flush_targets()
                last_flush = time.time()

            if not batch:
                self._stop.wait(0.005)

        self._drain_and_flush()

    def _emit_to_targets(self, record: logging.LogRecord) -> None:
        for target in self.targets:
            if record.levelno >= target.level:
                # Handler.handle() applies filters and routes I/O errors to handleError
                target.handle(record)

    def _flush_targets(self) -> None:
        for target in self.targets:
            target.flush()

    def _drain_and_flush(self) -> None:
        while True:
            try:
                record = self.handler.log_queue.get_nowait()
            except queue.Empty:
                break
            self._emit_to_targets(record)
        self._flush_targets()


class AsyncHandlerWrapper(logging.Handler):
    """Wrapper that makes existing handlers asynchronous.

    Example:
        console_handler = logging.StreamHandler(sys.stdout)
        logger.addHandler(AsyncHandlerWrapper([console_handler]))
    """

    def __init__(self, wrapped_handlers: List[logging.Handler], max_queue_size: int = 10000):
        super().__init__()
        self.wrapped_handlers = wrapped_handlers
        self.async_handler = AsyncLogHandler(max_queue_size)
        self.processor = BackgroundLogProcessor(self.async_handler, wrapped_handlers)
        self.processor.start()
        atexit.register(self.shutdown)

    def emit(self, record: logging.LogRecord) -> None:
        self.async_handler.emit(record)

    def flush(self) -> None:
        for handler in self.wrapped_handlers:
            handler.flush()

    def shutdown(self) -> None:
        self.async_handler.shutdown()
        self.processor.stop()

    def close(self) -> None:
        self.shutdown()
        for handler in self.wrapped_handlers:
            handler.close()
        super().close()


def make_logger_async(logger: logging.Logger) -> Optional[AsyncHandlerWrapper]:
    """Move a logger's handlers behind an AsyncHandlerWrapper.

    Returns:
        The wrapper, or None if the logger has no handlers or is already async.
    """
    current = [h for h in logger.handlers if not isinstance(h, AsyncHandlerWrapper)]
    if not current or len(current) != len(logger.handlers):
        return None

    wrapper = AsyncHandlerWrapper(current)
    for handler in current:
        logger.removeHandler(handler)
    logger.addHandler(wrapper)
    return wrapper


def shutdown_async_logging(logger: logging.Logger) -> None:
    """Stop background writers attached to a logger and flush pending records."""
    for handler in list(logger.handlers):
        if isinstance(handler, AsyncHandlerWrapper):
            handler.shutdown()
