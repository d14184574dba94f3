"""
Tests for the sequential and process-pool executors.

Run with:  python -m pytest tests/ -v
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from enmsdm import PoolExecutor, SequentialExecutor, make_executor


def test_sequential_map_keeps_order():
    with SequentialExecutor() as ex:
        assert ex.map(abs, [-3, 2, -1]) == [3, 2, 1]


def test_pool_map_keeps_order():
    items = list(range(-20, 0))
    with PoolExecutor(2) as ex:
        assert ex.map(abs, items) == [abs(i) for i in items]
        assert ex.map(abs, []) == []


def test_pool_is_scoped_to_with_block():
    ex = PoolExecutor(2)
    with pytest.raises(RuntimeError):
        ex.map(abs, [1])
    with ex:
        assert ex.map(abs, [-1]) == [1]
    assert ex._pool is None
    with pytest.raises(RuntimeError):
        ex.map(abs, [1])


def test_pool_released_on_error():
    ex = PoolExecutor(2)
    with pytest.raises(ZeroDivisionError):
        with ex:
            1 / 0
    assert ex._pool is None
    # reusable afterwards
    with ex:
        assert ex.map(abs, [-2]) == [2]


def test_make_executor():
    assert isinstance(make_executor(1), SequentialExecutor)
    ex = make_executor(2)
    if (os.cpu_count() or 1) > 1:
        assert isinstance(ex, PoolExecutor)
        assert ex.workers == 2
    with pytest.raises(ValueError):
        make_executor(0)
    with pytest.raises(ValueError):
        PoolExecutor(0)


if __name__ == '__main__':
    sys.exit(pytest.main([__file__, '-v']))
