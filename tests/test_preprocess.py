"""
Tests for input validation, site weights and predictor scaling.

Run with:  python -m pytest tests/ -v
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pandas as pd
import pytest

from enmsdm import calc_weights, scale_predictors
from enmsdm.preprocess import is_factor, sample_size, validate_data


def test_balanced_weights():
    y = np.r_[np.ones(100), np.zeros(400)]
    w = calc_weights(True, y, 'binomial')
    assert np.allclose(w[:100], 1.0)
    assert np.allclose(w[100:], 0.25)
    assert abs(w[y == 1].sum() - w[y == 0].sum()) < 1e-9


def test_uniform_weights():
    y = np.r_[np.ones(10), np.zeros(30)]
    assert np.all(calc_weights(False, y, 'binomial') == 1.0)
    assert np.all(calc_weights(True, np.arange(5.0), 'poisson') == 1.0)


def test_user_weights_validated():
    y = np.zeros(3)
    assert np.allclose(calc_weights([1, 2, 3], y), [1, 2, 3])
    with pytest.raises(ValueError):
        calc_weights([1, 2], y)
    with pytest.raises(ValueError):
        calc_weights([1, -2, 3], y)


def test_scale_true_stores_training_parameters():
    rng = np.random.RandomState(0)
    z = rng.randn(200)
    x = 50 + 10 * (z - z.mean()) / z.std(ddof=1)
    X = pd.DataFrame({'x': x, 'soil': pd.Categorical(['a', 'b'] * 100)})

    Xs, scales = scale_predictors(True, X)
    assert abs(scales.mean['x'] - 50) < 1e-9
    assert abs(scales.sd['x'] - 10) < 1e-9
    assert 'soil' not in scales.mean.index
    assert abs(Xs['x'].mean()) < 1e-9
    assert is_factor(Xs['soil'])

    new = pd.DataFrame({'x': [40.0, 50.0, 70.0]})
    assert np.allclose(scales.transform(new)['x'], [-1.0, 0.0, 2.0])
    assert scales.to_dict() == {'mean': {'x': scales.mean['x']},
                                'sd': {'x': scales.sd['x']}}


def test_scale_auto_warns_for_unscaled():
    X = pd.DataFrame({'x': np.linspace(0, 100, 50)})
    with pytest.warns(UserWarning, match='centred and scaled'):
        out, scales = scale_predictors(None, X)
    assert scales is None
    assert out is X


def test_scale_false_is_noop():
    X = pd.DataFrame({'x': np.linspace(0, 100, 50)})
    out, scales = scale_predictors(False, X)
    assert scales is None
    assert out is X


def test_validate_data_cleans_rows_and_factors():
    X = pd.DataFrame({
        'a': [1.0, 2.0, np.nan, 4.0, 5.0, 6.0],
        'habitat': ['forest', 'grass', 'forest', 'grass', 'forest', 'grass'],
        'wt': [1.0, 1.0, 1.0, 2.0, 2.0, 2.0],
    })
    y = pd.Series([1, 0, 1, 0, np.nan, 1], name='pres')
    Xc, yc, w = validate_data(X, y, weights='wt')

    assert list(Xc.columns) == ['a', 'habitat']
    assert len(Xc) == len(yc) == len(w) == 4
    assert is_factor(Xc['habitat'])
    assert list(Xc['habitat'].cat.categories) == ['forest', 'grass']
    assert list(w) == [1.0, 1.0, 2.0, 2.0]
    assert yc.name == 'pres'


def test_validate_data_errors():
    X = pd.DataFrame({'a': [1.0, 2.0, 3.0]})
    with pytest.raises(ValueError, match='binomial'):
        validate_data(X, pd.Series([0, 2, 1], name='pres'))
    with pytest.raises(ValueError, match='weights'):
        validate_data(X, pd.Series([0, 1, 1]), weights=[1.0, 2.0])
    with pytest.raises(ValueError, match='not found'):
        validate_data(X, pd.Series([0, 1, 1]), weights='wt')
    with pytest.raises(ValueError, match='rows'):
        validate_data(X, pd.Series([0, 1]))
    with pytest.raises(ValueError, match='also listed'):
        validate_data(X, pd.Series([0, 1, 1], name='a'))


def test_validate_data_bool_response_is_numeric():
    X = pd.DataFrame({'a': [1.0, 2.0, 3.0, 4.0]})
    _, yc, _ = validate_data(X, pd.Series([True, False, True, False],
                                          name='pres'))
    assert yc.dtype == float
    assert list(yc) == [1.0, 0.0, 1.0, 0.0]


def test_sample_size():
    y = pd.Series([1, 0, 0, 1, 1])
    assert sample_size(y, 'binomial') == 3
    assert sample_size(y, 'poisson') == 5


if __name__ == '__main__':
    sys.exit(pytest.main([__file__, '-v']))
