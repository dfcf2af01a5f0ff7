"""
=============================================================================
WORKER POOL
=============================================================================

Connections are served on worker threads so the accept loop never waits on
a slow client.

    accept thread                          worker threads
    ─────────────                          ──────────────
    submit(job) ──► [ bounded queue ] ──► job(*args, **kwargs)
         │
         └── queue full → False            (the server answers 503)

The pool starts with `min_workers` threads. A job queued while no worker is
idle adds one more thread, up to `max_workers`. Threads are never retired
before shutdown().

=============================================================================
"""

import logging
import queue
import threading
from typing import Any, Callable, List, Optional, Tuple


logger = logging.getLogger(__name__)

Job = Tuple[Callable[..., Any], tuple, dict]


class ThreadPool:
    """
    Bounded pool of daemon worker threads.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=128)
        pool.start()
        if not pool.submit(serve, args=(conn,)):
            reject(conn)
        pool.shutdown()
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 16, queue_size: int = 128):
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError("Need 1 <= min_workers <= max_workers")

        self.min_workers = min_workers
        self.max_workers = max_workers
        self._jobs: "queue.Queue[Optional[Job]]" = queue.Queue(maxsize=queue_size)
        self._threads: List[threading.Thread] = []
        self._idle = 0
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def size(self) -> int:
        """Number of worker threads alive."""
        with self._lock:
            return len(self._threads)

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            for _ in range(self.min_workers):
                self._spawn()
        logger.info(f"Worker pool started: {self.min_workers} threads, up to {self.max_workers}")

    def submit(self, func: Callable[..., Any], args: tuple = (), kwargs: Optional[dict] = None) -> bool:
        """
        Queue a job without blocking.

        Returns:
            True once queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._running:
            raise RuntimeError("Thread pool is not running")

        try:
            self._jobs.put_nowait((func, args, kwargs or {}))
        except queue.Full:
            return False

        with self._lock:
            if self._idle == 0 and len(self._threads) < self.max_workers:
                self._spawn()
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop every worker once the jobs already queued have run."""
        with self._lock:
            if not self._running:
                return
            self._running = False
            threads, self._threads = self._threads, []

        for _ in threads:
            self._jobs.put(None)
        if wait:
            for thread in threads:
                thread.join(timeout=5.0)
        logger.info("Worker pool stopped")

    def _spawn(self) -> None:
        # caller holds self._lock
        thread = threading.Thread(
            target=self._work,
            name=f"httpchain-worker-{len(self._threads)}",
            daemon=True,
        )
        self._threads.append(thread)
        self._idle += 1
        thread.start()

    def _work(self) -> None:
        while True:
            job = self._jobs.get()
            if job is None:
                return

            with self._lock:
                self._idle -= 1

            func, args, kwargs = job
            try:
                func(*args, **kwargs)
            except Exception:
                logger.exception(f"Job {getattr(func, '__name__', func)!r} failed")
            finally:
                with self._lock:
                    self._idle += 1
