"""
Executors for fanning out independent model fits.

Both executors are context managers exposing ``map(fn, items)``, which
returns results in the order of *items*.  A ``PoolExecutor`` only owns a
process pool between ``__enter__`` and ``__exit__``, so one instance can be
reused across training calls and the pool is always released, errors
included.
"""

import os
from concurrent.futures import ProcessPoolExecutor


class SequentialExecutor:
    """Run tasks one after another in the calling process."""

    workers = 1

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def __repr__(self):
        return "SequentialExecutor()"

    def map(self, fn, items):
        return [fn(item) for item in items]


class PoolExecutor:
    """
    Bounded process pool.

    Parameters
    ----------
    workers : int
        Number of worker processes (>= 1).

    Notes
    -----
    Tasks and their arguments are pickled, so *fn* must be importable at
    module level (a ``functools.partial`` of such a function is fine).
    """

    def __init__(self, workers):
        if int(workers) < 1:
            raise ValueError("workers must be >= 1.")
        self.workers = int(workers)
        self._pool = None

    def __enter__(self):
        if self._pool is not None:
            raise RuntimeError("PoolExecutor is already running.")
        self._pool = ProcessPoolExecutor(max_workers=self.workers)
        return self

    def __exit__(self, exc_type, exc, tb):
        pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=True)
        return False

    def __repr__(self):
        return f"PoolExecutor(workers={self.workers})"

    def map(self, fn, items):
        if self._pool is None:
            raise RuntimeError(
                "PoolExecutor must be used inside a `with` block."
            )
        items = list(items)
        if not items:
            return []
        chunksize = max(1, len(items) // (self.workers * 4))
        return list(self._pool.map(fn, items, chunksize=chunksize))


def make_executor(cores=1):
    """
    Sequential executor for ``cores == 1``, otherwise a process pool with
    ``min(cores, os.cpu_count())`` workers.
    """
    cores = int(cores)
    if cores < 1:
        raise ValueError("cores must be >= 1.")
    cores = min(cores, os.cpu_count() or 1)
    if cores == 1:
        return SequentialExecutor()
    return PoolExecutor(cores)
