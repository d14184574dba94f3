"""
Construction and selection phases.

Phase 1 (``construct_terms``) fits every candidate term group as its own
model and ranks them by AICc.  ``assemble_full_model`` then greedily unions
the best groups into a "full" model under a term cap and a data-per-term
budget.  Phase 2 (``select_model``) fits every marginality-respecting subset
of the full model and ranks them by AICc.
"""

import functools
import itertools
import warnings

import pandas as pd

from .executors import SequentialExecutor
from .fitting import fit_glm
from .terms import Formula


TUNING_COLUMNS = ['model', 'converged', 'boundary', 'AICc']


class NoValidModelError(RuntimeError):
    """Every model in a phase failed to converge or hit the boundary."""


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def evaluate_formulae(formulae, data, resp, weights=None, family='binomial',
                      method='IRLS', executor=None, keep_model=False):
    """
    Fit every formula, in parallel when *executor* is a pool.

    Results come back in the order of *formulae*.
    """
    executor = executor if executor is not None else SequentialExecutor()
    task = functools.partial(
        fit_glm, data=data, resp=resp, weights=weights, family=family,
        method=method, keep_model=keep_model,
    )
    return list(executor.map(task, list(formulae)))


def rank_results(results, remove_invalid=True, fail_if_no_valid=True,
                 message='No models converged or all had parameter '
                         'estimates near the boundary.'):
    """
    Drop invalid fits (optionally) and sort by AICc.

    The sort is stable, so ties keep their enumeration order.

    Returns
    -------
    list of FitResult, or None if nothing valid remains and
    ``fail_if_no_valid`` is False.

    Raises
    ------
    NoValidModelError
        If nothing valid remains and ``fail_if_no_valid`` is True.
    """
    results = list(results)
    if remove_invalid:
        results = [r for r in results if r.is_valid]
        if not results:
            if fail_if_no_valid:
                raise NoValidModelError(message)
            warnings.warn(message, UserWarning, stacklevel=3)
            return None
    return sorted(results, key=lambda r: r.aicc)


def tuning_table(results):
    """Tuning table (one row per model) in the order given."""
    if not results:
        return pd.DataFrame(columns=TUNING_COLUMNS)
    return pd.DataFrame([r.row() for r in results], columns=TUNING_COLUMNS)


# ---------------------------------------------------------------------------
# Phase 1: term-by-term construction
# ---------------------------------------------------------------------------

def construct_terms(candidates, data, resp, weights=None, family='binomial',
                    method='IRLS', executor=None, remove_invalid=True,
                    fail_if_no_valid=True):
    """
    Fit each candidate term group alone (plus intercept) and rank by AICc.

    Parameters
    ----------
    candidates : sequence of Formula
        Output of ``generate_terms``.
    data, resp, weights, family, method
        Passed to ``fit_glm``.
    executor : SequentialExecutor or PoolExecutor, optional
    remove_invalid : bool
        Drop non-converged / boundary fits before ranking.
    fail_if_no_valid : bool
        Raise ``NoValidModelError`` if nothing valid remains; otherwise warn
        and return None.

    Returns
    -------
    list of FitResult or None
    """
    results = evaluate_formulae(candidates, data, resp, weights=weights,
                                family=family, method=method,
                                executor=executor)
    return rank_results(
        results, remove_invalid, fail_if_no_valid,
        message='No single-term models converged or all models had '
                'parameter estimates near the boundary.',
    )


def assemble_full_model(ranked, sample_size, max_terms, min_data_per_term):
    """
    Greedily union ranked term groups into a "full" model.

    Starts from the best group and adds the next one only while the union
    has at most *max_terms* terms and ``sample_size / n_terms`` stays at or
    above *min_data_per_term*.  The first rejected group stops growth; later
    groups are not tried.

    Parameters
    ----------
    ranked : sequence of Formula or FitResult
        Best first.

    Returns
    -------
    Formula
    """
    formulae = [getattr(r, 'formula', r) for r in ranked]
    if not formulae:
        raise ValueError("Cannot assemble a model from zero terms.")

    full = Formula(formulae[0])
    for candidate in formulae[1:]:
        grown = full.union(candidate)
        if len(grown) > max_terms:
            break
        if sample_size / len(grown) < min_data_per_term:
            break
        full = grown
    return full


# ---------------------------------------------------------------------------
# Phase 2: subset selection
# ---------------------------------------------------------------------------

def enumerate_subsets(full, intercept_only=True, max_terms=None):
    """
    Yield every marginality-respecting sub-model of *full*.

    For each non-empty subset of the linear terms, every combination of
    the quadratic and interaction terms of *full* whose main effects are in
    that subset is appended.  Illegal combinations are never generated.

    Parameters
    ----------
    full : Formula
    intercept_only : bool
        Yield the empty (intercept-only) formula first.
    max_terms : int, optional
        Skip formulae with more terms than this.
    """
    if intercept_only:
        yield Formula()

    linears = full.linears()
    higher = full.quadratics() + full.interactions()

    for size in range(1, len(linears) + 1):
        for subset in itertools.combinations(linears, size):
            present = {t.name for t in subset}
            allowed = [t for t in higher if set(t.predictors) <= present]
            for k in range(len(allowed) + 1):
                if max_terms is not None and size + k > max_terms:
                    break
                for extra in itertools.combinations(allowed, k):
                    yield Formula(subset + extra)


def select_model(full, data, resp, weights=None, family='binomial',
                 method='IRLS', executor=None, intercept_only=True,
                 max_terms=None, remove_invalid=True, fail_if_no_valid=True):
    """
    Fit every legal subset of *full* and rank by AICc.

    Returns
    -------
    list of FitResult (best first, statsmodels results kept) or None

    Raises
    ------
    NoValidModelError
    """
    formulae = list(enumerate_subsets(full, intercept_only=intercept_only,
                                      max_terms=max_terms))
    results = evaluate_formulae(formulae, data, resp, weights=weights,
                                family=family, method=method,
                                executor=executor, keep_model=True)
    return rank_results(
        results, remove_invalid, fail_if_no_valid,
        message='No models converged or all had parameter estimates near '
                'the boundary of parameter space.',
    )
