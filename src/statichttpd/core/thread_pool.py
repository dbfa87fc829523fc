"""
=============================================================================
WORKER POOL
=============================================================================

A fixed set of worker threads pulling jobs from one shared queue. Each
accepted connection becomes one job; the job is the connection's whole
transaction loop, so a worker belongs to one client until it hangs up.

=============================================================================
THE SCHEDULING CONTRACT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     Connection Scheduling                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   acceptor ── submit(job) ──► ┌──────────────────────────┐          │
    │                               │ job queue (unbounded)    │          │
    │                               └────────────┬─────────────┘          │
    │                                            │ get()                   │
    │                 ┌──────────────────────────┼──────────────┐         │
    │                 ▼                          ▼              ▼         │
    │           ┌──────────┐              ┌──────────┐   ┌──────────┐     │
    │           │ worker-0 │              │ worker-1 │   │ worker-N │     │
    │           │ client A │              │ client B │   │  (idle)  │     │
    │           └──────────┘              └──────────┘   └──────────┘     │
    │                                                                      │
    │   N = worker_count, fixed from start() to shutdown()                │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

1. At most worker_count jobs run at the same time.
2. A worker finishes its job before it takes another one.
3. submit() never blocks and never rejects work: when every worker is
   busy, the job waits in the queue. Connections get delayed, not
   dropped. There is no capacity guarantee beyond that.
4. A job that raises is logged; the worker carries on with the next one.

Stopping: one STOP sentinel per worker is queued behind any pending jobs.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)

# Queued once per worker by shutdown(); a worker that dequeues it exits.
STOP = None


class WorkerState(Enum):
    """What a worker thread is doing right now."""
    WAITING = "waiting"    # Blocked on the job queue
    SERVING = "serving"    # Running a job (serving a connection)
    EXITED = "exited"


@dataclass
class Job:
    """
    A queued call: func(*args), run later on a worker thread.

    Attributes:
        func: Callable to run.
        args: Positional arguments for func.
        queued_at: When submit() was called; used to log long queue waits.
    """
    func: Callable[..., Any]
    args: tuple = ()
    queued_at: float = field(default_factory=time.monotonic)

    def run(self) -> None:
        self.func(*self.args)


class Worker(threading.Thread):
    """
    One pool thread.

    Takes jobs off the shared queue until it sees STOP or is told to stop.
    The queue get() uses a timeout so a stop request is noticed even when no
    job ever arrives.
    """

    def __init__(self, jobs: queue.Queue, index: int, poll_interval: float = 1.0):
        # daemon=True: a client that never hangs up must not keep the
        # interpreter alive at exit
        super().__init__(name=f"statichttpd-worker-{index}", daemon=True)

        self.jobs = jobs
        self.index = index
        self.poll_interval = poll_interval

        self.state = WorkerState.WAITING
        self.jobs_done = 0
        self.jobs_failed = 0
        self._stop_requested = threading.Event()

    def run(self):
        logger.debug(f"{self.name} up")

        while not self._stop_requested.is_set():
            try:
                job = self.jobs.get(timeout=self.poll_interval)
            except queue.Empty:
                continue

            try:
                if job is STOP:
                    break
                self._run_job(job)
            finally:
                self.jobs.task_done()

        self.state = WorkerState.EXITED
        logger.debug(f"{self.name} exited after {self.jobs_done + self.jobs_failed} jobs")

    def _run_job(self, job: Job):
        self.state = WorkerState.SERVING
        waited = time.monotonic() - job.queued_at
        if waited > 1.0:
            logger.debug(f"{self.name} picked up a job queued {waited:.2f}s ago")

        try:
            job.run()
        except Exception as e:
            logger.exception(f"{self.name} job raised: {e}")
            self.jobs_failed += 1
        else:
            self.jobs_done += 1
        finally:
            self.state = WorkerState.WAITING

    def request_stop(self):
        """Exit after the current job (or the current poll interval)."""
        self._stop_requested.set()


class ThreadPool:
    """
    Fixed-size worker pool with an unbounded job queue.

        pool = ThreadPool(worker_count=8)
        pool.start()
        pool.submit(serve_connection, args=(conn,))
        ...
        pool.shutdown(wait=True, timeout=5.0)
    """

    def __init__(self, worker_count: int, idle_timeout: float = 1.0):
        """
        Args:
            worker_count: Number of worker threads, created by start().
            idle_timeout: How often a waiting worker re-checks for a stop
                          request, in seconds.

        Raises:
            ValueError: If worker_count < 1.
        """
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")

        self.worker_count = worker_count
        self.idle_timeout = idle_timeout

        # No maxsize: put() never blocks and never raises queue.Full
        self._jobs: queue.Queue[Optional[Job]] = queue.Queue()

        self._workers: list[Worker] = []
        self._state_lock = threading.Lock()
        self._accepting = False

    def start(self):
        """Spawn the worker threads. Calling it on a running pool does nothing."""
        with self._state_lock:
            if self._accepting:
                return

            self._workers = [
                Worker(self._jobs, index, poll_interval=self.idle_timeout)
                for index in range(self.worker_count)
            ]
            for worker in self._workers:
                worker.start()

            self._accepting = True
            logger.info(f"Worker pool started ({self.worker_count} threads)")

    def submit(self, func: Callable[..., Any], args: tuple = ()) -> None:
        """
        Queue func(*args) for the next free worker.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._accepting:
            raise RuntimeError("Worker pool is not running")

        self._jobs.put(Job(func=func, args=args))

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool. Later submit() calls raise RuntimeError.

        Args:
            wait: Let queued and running jobs finish first. If False,
                  jobs still in the queue never run.
            timeout: Upper bound, in seconds, on waiting for jobs. None
                     waits as long as it takes.
        """
        with self._state_lock:
            if not self._accepting:
                return
            self._accepting = False

        if wait and not self._wait_for_jobs(timeout):
            logger.warning(f"Jobs still running after {timeout}s, stopping workers anyway")

        if not wait:
            self._discard_pending()

        for _ in self._workers:
            self._jobs.put(STOP)
        for worker in self._workers:
            worker.request_stop()
            worker.join(timeout=2.0)

        self._workers = []
        logger.info("Worker pool stopped")

    def _wait_for_jobs(self, timeout: Optional[float]) -> bool:
        """Block until every submitted job finished. False on timeout."""
        if timeout is None:
            self._jobs.join()
            return True

        deadline = time.monotonic() + timeout
        while self._jobs.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.05)
        return True

    def _discard_pending(self):
        while True:
            try:
                self._jobs.get_nowait()
            except queue.Empty:
                return
            self._jobs.task_done()

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def busy_workers(self) -> int:
        """Workers currently serving a connection."""
        return sum(1 for w in self._workers if w.state is WorkerState.SERVING)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state is WorkerState.WAITING)

    @property
    def queue_size(self) -> int:
        """Jobs waiting for a free worker."""
        return self._jobs.qsize()

    @property
    def stats(self) -> dict:
        """Snapshot for logging and tests."""
        workers = list(self._workers)
        return {
            "workers": {
                "total": len(workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self.queue_size,
                "completed": sum(w.jobs_done for w in workers),
                "failed": sum(w.jobs_failed for w in workers),
            },
        }
