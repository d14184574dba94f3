"""
Tests for term generation and marginality-respecting subset enumeration.

Run with:  python -m pytest tests/ -v
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from enmsdm import (
    Formula,
    Interaction,
    Linear,
    Quadratic,
    enumerate_subsets,
    generate_terms,
)
from enmsdm.terms import quote_name


def test_two_predictor_scenario():
    """100 presences, 2 continuous predictors -> 2 + 2 + 1 candidates."""
    cands = generate_terms(['bio1', 'bio12'], [False, False],
                           sample_size=100, min_data_per_term=10)
    assert len(cands) == 5
    assert cands[0] == Formula([Linear('bio1')])
    assert cands[1] == Formula([Linear('bio12')])
    assert cands[2] == Formula([Linear('bio1'), Quadratic('bio1')])
    assert cands[3] == Formula([Linear('bio12'), Quadratic('bio12')])
    assert cands[4] == Formula([Linear('bio1'), Linear('bio12'),
                                Interaction('bio1', 'bio12')])


def test_generated_terms_respect_marginality():
    preds = ['a', 'b', 'c', 'd']
    cands = generate_terms(preds, [False, True, False, False],
                           sample_size=500, min_data_per_term=10)
    for cand in cands:
        assert cand.respects_marginality(), str(cand)
    quads = [c for c in cands if c.quadratics()]
    ias = [c for c in cands if c.interactions()]
    assert len(quads) == 3          # factor 'b' is never squared
    assert len(ias) == 6            # every unordered pair, factors included
    assert all(len(c) == 2 for c in quads)
    assert all(len(c) == 3 for c in ias)


def test_small_samples_drop_higher_order_terms():
    cands = generate_terms(['a', 'b'], {'a': False, 'b': False},
                           sample_size=19, min_data_per_term=10)
    assert cands == [Formula([Linear('a')]), Formula([Linear('b')])]


def test_single_predictor_has_no_interactions():
    cands = generate_terms(['a'], [False], sample_size=100,
                           min_data_per_term=10)
    assert len(cands) == 2
    assert not any(c.interactions() for c in cands)


def test_toggles():
    cands = generate_terms(['a', 'b'], [False, False], sample_size=100,
                           min_data_per_term=10, quadratic=False,
                           interaction=False)
    assert len(cands) == 2


def test_formula_set_semantics():
    f1 = Formula([Linear('a'), Linear('b'), Linear('a')])
    f2 = Formula([Linear('b'), Linear('a')])
    assert len(f1) == 2
    assert f1 == f2
    assert hash(f1) == hash(f2)
    assert str(f1) == 'a + b'
    assert str(Formula()) == '1'

    grown = f1.union(Formula([Linear('a'), Quadratic('a')]))
    assert len(grown) == 3
    assert grown.predictors() == ['a', 'b']

    with pytest.raises(TypeError):
        Formula(['a'])


def test_patsy_rendering():
    f = Formula([Linear('x'), Quadratic('x'), Linear('y'),
                 Interaction('x', 'y')])
    assert f.rhs() == '1 + x + I(x ** 2) + y + x:y'
    assert f.rhs(intercept=False) == '0 + x + I(x ** 2) + y + x:y'
    assert Formula().rhs() == '1'
    assert quote_name('bio 1') == "Q('bio 1')"
    assert quote_name('lambda') == "Q('lambda')"
    assert quote_name('bio1') == 'bio1'


def test_enumerate_subsets_only_legal_models():
    full = Formula([Linear('a'), Linear('b'), Quadratic('a'),
                    Interaction('a', 'b')])
    subsets = list(enumerate_subsets(full))

    # null; {a}, {a, a^2}; {b}; {a, b} x 4 combinations of (a^2, a:b)
    assert len(subsets) == 8
    assert subsets[0] == Formula()
    assert len(set(subsets)) == len(subsets)
    for f in subsets:
        assert f.respects_marginality(), str(f)
        assert all(t in full for t in f)
    assert full in subsets


def test_enumerate_subsets_never_adds_terms_outside_full_model():
    # b^2 and a:b are legal in principle but absent from the full model
    full = Formula([Linear('a'), Linear('b'), Quadratic('a')])
    subsets = list(enumerate_subsets(full, intercept_only=False))
    assert len(subsets) == 5
    for f in subsets:
        assert Quadratic('b') not in f
        assert Interaction('a', 'b') not in f


def test_enumerate_subsets_max_terms():
    full = Formula([Linear('a'), Linear('b'), Linear('c'),
                    Quadratic('a'), Quadratic('b')])
    subsets = list(enumerate_subsets(full, max_terms=2))
    assert all(len(f) <= 2 for f in subsets)
    assert Formula([Linear('a'), Quadratic('a')]) in subsets
    assert Formula([Linear('a'), Linear('b'), Linear('c')]) not in subsets


if __name__ == '__main__':
    sys.exit(pytest.main([__file__, '-v']))
