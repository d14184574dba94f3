"""
Automated GLM construction and selection for species distribution models.

The default procedure has two phases.  First, single terms (linear,
quadratic and two-way interaction groups) are each fitted as their own
model and ranked by AICc.  A "full" model is then assembled from the best
groups so that there are at least ``pres_per_term_final`` presences (binary
response) or rows (otherwise) per term and no more than ``max_terms`` terms.
Second, every sub-model of the full model that respects marginality is
fitted and the one with the lowest AICc is kept.
"""

import itertools
import time
import warnings

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator

from .executors import make_executor
from .fitting import FittedGLM, fit_glm, get_family
from .preprocess import (
    calc_weights,
    is_factor,
    sample_size,
    scale_predictors,
    validate_data,
)
from .selection import (
    NoValidModelError,
    assemble_full_model,
    construct_terms,
    select_model,
    tuning_table,
)
from .terms import Formula, generate_terms


OUTPUTS = ('model', 'models', 'tuning')


# ---------------------------------------------------------------------------
# Main class
# ---------------------------------------------------------------------------

class GLMSelector(BaseEstimator):
    """
    GLM with automated term construction and AICc-based subset selection.

    Parameters
    ----------
    scale : bool or None, default=None
        True: centre and scale non-factor predictors; the means and standard
        deviations are stored on the model and re-applied in ``predict``.
        False: no scaling.  None: no scaling, but warn if predictors do not
        look standardised.
    construct : bool, default=True
        Rank single-term models by AICc and build the "full" model from the
        best of them.  If False the full model holds every term allowed by
        ``quadratic`` and ``interaction`` and is fitted directly.
    select : bool, default=True
        Fit all marginality-respecting sub-models of the full model and keep
        the one with the lowest AICc.  Requires ``construct=True``.
    quadratic, interaction : bool, default=True
        Offer quadratic (non-factor predictors only) and two-way interaction
        terms during construction.
    intercept_only : bool, default=True
        Include the intercept-only model in selection.
    method : str, default='IRLS'
        statsmodels GLM fitting method.
    pres_per_term_initial : float, default=10
        Quadratic and interaction candidates are only offered when there are
        at least twice this many presences (or rows).
    pres_per_term_final : float, default=10
        Minimum presences (or rows) per term in the full model.
    max_terms : int, default=8
        Maximum number of terms in any model, intercept excluded.
    weights : bool, array-like or str, default=True
        True: presences and background sites carry equal total weight
        (binomial family).  False: uniform.  Array: one weight per row.
        str: name of a column of X holding the weights.
    family : str or statsmodels Family, default='binomial'
    link : str, statsmodels Link or None, default=None
        None uses the family's canonical link.
    remove_invalid : bool, default=True
        Discard models that did not converge or have estimates near the
        boundary.
    fail_if_no_valid : bool, default=True
        Raise ``NoValidModelError`` when no valid model remains; otherwise
        warn and leave ``model_`` as None.
    cores : int, default=1
        Worker processes used when ``executor`` is None.
    executor : SequentialExecutor or PoolExecutor, optional
        Overrides ``cores``.
    verbose : bool, default=False
        Print progress.
    """

    def __init__(
        self,
        scale=None,
        construct=True,
        select=True,
        quadratic=True,
        interaction=True,
        intercept_only=True,
        method='IRLS',
        pres_per_term_initial=10,
        pres_per_term_final=10,
        max_terms=8,
        weights=True,
        family='binomial',
        link=None,
        remove_invalid=True,
        fail_if_no_valid=True,
        cores=1,
        executor=None,
        verbose=False,
    ):
        self.scale = scale
        self.construct = construct
        self.select = select
        self.quadratic = quadratic
        self.interaction = interaction
        self.intercept_only = intercept_only
        self.method = method
        self.pres_per_term_initial = pres_per_term_initial
        self.pres_per_term_final = pres_per_term_final
        self.max_terms = max_terms
        self.weights = weights
        self.family = family
        self.link = link
        self.remove_invalid = remove_invalid
        self.fail_if_no_valid = fail_if_no_valid
        self.cores = cores
        self.executor = executor
        self.verbose = verbose

        # --- attributes set during fit ---
        self.response_ = None
        self.predictors_ = None
        self.factor_levels_ = None
        self.weights_ = None
        self.scale_ = None
        self.sample_size_ = None
        self.candidates_ = None
        self.construction_ = None
        self.full_terms_ = None
        self.model_ = None
        self.models_ = None
        self.tuning_ = None
        self.runtime_ = None

        self._reference = None
        self._ranges = None
        self._is_fitted = False

    # ---- public interface ------------------------------------------------

    def fit(self, X, y):
        """
        Construct and select the model.

        Parameters
        ----------
        X : pd.DataFrame or array-like
            Predictors (plus the weight column when ``weights`` is a column
            name).  Non-numeric columns are treated as factors.
        y : array-like
            Response; 0/1 for the binomial family.

        Returns
        -------
        self
            ``model_`` is None if no valid model was found and
            ``fail_if_no_valid`` is False.
        """
        t0 = time.time()
        verbose = self.verbose
        self._is_fitted = False
        family = get_family(self.family, self.link)

        # Setup -------------------------------------------------------------
        X, y, w = validate_data(X, y, weights=self.weights, family=family,
                                verbose=verbose)
        resp = y.name
        preds = list(X.columns)
        factors = {c: is_factor(X[c]) for c in preds}

        self.response_ = resp
        self.predictors_ = preds
        self.factor_levels_ = {c: list(X[c].cat.categories)
                               for c in preds if factors[c]}
        self._reference, self._ranges = _reference_values(X)
        self.weights_ = calc_weights(w, y, family)

        # Scale -------------------------------------------------------------
        X, self.scale_ = scale_predictors(self.scale, X)
        data = X.copy()
        data[resp] = y.values

        self.sample_size_ = sample_size(y, family)
        self.candidates_ = generate_terms(
            preds, factors, self.sample_size_, self.pres_per_term_initial,
            quadratic=self.quadratic, interaction=self.interaction,
        )
        self.construction_ = None
        self.full_terms_ = None

        if verbose:
            print("=" * 70)
            print("GLM CONSTRUCTION AND SELECTION")
            print("=" * 70)
            print(f"  Dataset : n={len(data)}, p={len(preds)}, "
                  f"sample size={self.sample_size_:g}")
            print(f"  family={type(family).__name__}  "
                  f"max_terms={self.max_terms}  "
                  f"candidates={len(self.candidates_)}")
            print()

        fit_args = dict(data=data, resp=resp, weights=self.weights_,
                        family=family, method=self.method)

        executor = self.executor
        if executor is None:
            executor = make_executor(self.cores if self.construct else 1)

        with executor:
            if self.construct:
                results, models_out = self._construct_and_select(
                    executor, fit_args, verbose)
            else:
                full = Formula(itertools.chain.from_iterable(self.candidates_))
                self.full_terms_ = full
                if self.select:
                    warnings.warn(
                        'Model selection is not performed when `construct` '
                        'is False.', UserWarning, stacklevel=2,
                    )
                results = self._fit_single(full, fit_args)
                models_out = False

        self.runtime_ = time.time() - t0

        if results is None:
            self.model_ = None
            self.models_ = None
            self.tuning_ = None
            return self

        models = [self._wrap(r) for r in results]
        self.model_ = models[0]
        self.models_ = models if models_out else None
        self.tuning_ = tuning_table(results)
        self._is_fitted = True

        if not results[0].is_valid:
            warnings.warn(
                'The top model did not converge and/or had parameter '
                'estimates near the boundary.', UserWarning, stacklevel=2,
            )

        if verbose:
            self._print_summary()

        return self

    def predict(self, X, type='response'):
        """
        Predict for new data in raw (unscaled) units.

        Training-time scale parameters are re-applied; they are never
        recomputed from *X*.
        """
        self._check_fitted()
        return self.model_.predict(self._coerce_X(X), type=type)

    def get_tuning(self):
        """Return the tuning table (one row per model, best first)."""
        self._check_fitted()
        return self.tuning_.copy()

    def summary(self):
        """statsmodels summary of the selected model."""
        self._check_fitted()
        return self.model_.summary()

    def output(self, out='model'):
        """
        Return any of the selected model, all models and the tuning table.

        Parameters
        ----------
        out : str or sequence of str
            'model', 'models' and/or 'tuning'.  A single selector returns
            the object itself, several return a dict keyed by selector.
        """
        selectors = [out] if isinstance(out, str) else list(out)
        unknown = [s for s in selectors if s not in OUTPUTS]
        if not selectors or unknown:
            raise ValueError(
                f"out must be one or more of {OUTPUTS}, got {out!r}."
            )
        values = {'model': self.model_, 'models': self.models_,
                  'tuning': self.tuning_}
        if len(selectors) == 1:
            return values[selectors[0]]
        return {s: values[s] for s in selectors}

    def plot_tuning(self, top=25, figsize=(10, 7)):
        """
        Horizontal bar chart of ΔAICc for the best *top* models.

        Valid fits are blue, non-converged / boundary fits red.
        """
        self._check_fitted()
        tuning = self.tuning_.head(top).iloc[::-1]
        finite = tuning['AICc'].replace([np.inf, -np.inf], np.nan)
        delta = (finite - self.tuning_['AICc'].min()).fillna(0.0)
        colors = ['steelblue' if c and not b else '#ef4444'
                  for c, b in zip(tuning['converged'], tuning['boundary'])]

        fig, ax = plt.subplots(figsize=figsize)
        pos = np.arange(len(tuning))
        ax.barh(pos, delta.values, color=colors, alpha=0.85)
        ax.set_yticks(pos)
        ax.set_yticklabels(tuning['model'], fontsize=8)
        ax.set_xlabel("ΔAICc")
        ax.set_title(f"Model selection ({len(self.tuning_)} models)")
        ax.grid(True, axis='x', alpha=0.3)
        fig.tight_layout()
        return fig

    def plot_response(self, predictor, n_points=100, figsize=(7, 5)):
        """
        Partial response curve for *predictor*.

        Other predictors are held at their training means (numeric) or most
        common level (factors).
        """
        self._check_fitted()
        if predictor not in self.predictors_:
            raise ValueError(f"Unknown predictor '{predictor}'.")

        if predictor in self.factor_levels_:
            values = list(self.factor_levels_[predictor])
        else:
            lo, hi = self._ranges[predictor]
            values = np.linspace(lo, hi, n_points)

        frame = pd.DataFrame(
            {c: [self._reference[c]] * len(values)
             for c in self.predictors_}
        )
        frame[predictor] = values
        pred = self.predict(frame)

        fig, ax = plt.subplots(figsize=figsize)
        if predictor in self.factor_levels_:
            ax.bar([str(v) for v in values], pred, color='steelblue',
                   alpha=0.85)
        else:
            ax.plot(values, pred, 'r-', lw=2)
        ax.set_xlabel(predictor)
        ax.set_ylabel("Prediction")
        ax.set_title(f"Response to {predictor}")
        ax.grid(True, alpha=0.3)
        fig.tight_layout()
        return fig

    # ---- phase implementations -------------------------------------------

    def _construct_and_select(self, executor, fit_args, verbose):
        if verbose:
            print("STEP 1: TERM-BY-TERM EVALUATION")
            print("-" * 70)

        ranked = construct_terms(
            self.candidates_, executor=executor,
            remove_invalid=self.remove_invalid,
            fail_if_no_valid=self.fail_if_no_valid, **fit_args,
        )
        if ranked is None:
            return None, False
        self.construction_ = tuning_table(ranked)

        if verbose:
            print(self.construction_.to_string(index=False))
            print()

        full = assemble_full_model(ranked, self.sample_size_,
                                   self.max_terms, self.pres_per_term_final)
        self.full_terms_ = full

        if not self.select:
            if verbose:
                print(f"  Full model (no selection): {full}")
                print()
            return self._fit_single(full, fit_args), False

        if verbose:
            print("STEP 2: MODEL-BY-MODEL EVALUATION")
            print("-" * 70)
            print(f"  Full model: {full}")
            print()

        results = select_model(
            full, executor=executor, intercept_only=self.intercept_only,
            max_terms=self.max_terms, remove_invalid=self.remove_invalid,
            fail_if_no_valid=self.fail_if_no_valid, **fit_args,
        )
        if results is None:
            return None, True

        if verbose:
            print(tuning_table(results).to_string(index=False))
            print()

        return results, True

    def _fit_single(self, formula, fit_args):
        """Fit one model; apply the validity policy."""
        result = fit_glm(formula, keep_model=True, **fit_args)
        if not result.is_valid and self.remove_invalid:
            msg = ('The model did not converge and/or estimates are near '
                   'boundary conditions.')
            if self.fail_if_no_valid:
                raise NoValidModelError(msg)
            warnings.warn(msg, UserWarning, stacklevel=3)
            return None
        return [result]

    # ---- internal helpers ------------------------------------------------

    def _wrap(self, result):
        return FittedGLM(result, self.response_, scale=self.scale_,
                         factor_levels=self.factor_levels_)

    def _print_summary(self):
        model = self.model_
        print("=" * 70)
        print("FINAL MODEL SUMMARY")
        print("=" * 70)
        print(f"  Formula   : {self.response_} ~ {model.formula.rhs()}")
        print(f"  AICc      : {model.aicc:.4f}")
        print(f"  Converged : {model.converged}   "
              f"Boundary : {model.boundary}")
        print(f"\n  {'Term':30s}  {'Coefficient':>12s}")
        for name, coef in model.coefficients.items():
            print(f"  {name:30s}  {coef:>12.6f}")
        if self.scale_ is not None:
            scale = self.scale_.to_dict()
            print(f"\n  {'Scaled predictor':30s}  {'Mean':>12s}  {'SD':>12s}")
            for col, mean in scale['mean'].items():
                print(f"  {col:30s}  {mean:>12.4f}  "
                      f"{scale['sd'][col]:>12.4f}")
        n_models = len(self.tuning_)
        print(f"\n  Models evaluated       : {n_models}")
        print(f"  Runtime                : {self.runtime_:.2f}s")
        print("=" * 70)

    def _coerce_X(self, X):
        """Ensure X is a DataFrame with the training column names."""
        if isinstance(X, np.ndarray):
            X = pd.DataFrame(X, columns=self.predictors_)
        elif not isinstance(X, pd.DataFrame):
            X = pd.DataFrame(X)
        return X

    def _check_fitted(self):
        if not self._is_fitted:
            raise RuntimeError(
                "Model has not been fitted. Call .fit(X, y) first."
            )


def _reference_values(X):
    """Typical value and observed range of each raw predictor."""
    reference = {}
    ranges = {}
    for col in X.columns:
        if is_factor(X[col]):
            reference[col] = X[col].mode().iloc[0]
        else:
            reference[col] = float(X[col].mean())
            ranges[col] = (float(X[col].min()), float(X[col].max()))
    return reference, ranges


# ---------------------------------------------------------------------------
# Convenience function
# ---------------------------------------------------------------------------

def train_glm(data, resp=None, preds=None, out='model', **kwargs):
    """
    One-liner convenience function.

    Parameters
    ----------
    data : pd.DataFrame
        Response, predictors and (optionally) a weight column.
    resp : str or int, optional
        Response column name or position.  Defaults to the first column.
    preds : sequence of str or int, optional
        Predictor names or positions.  Defaults to every other column
        (minus the weight column when ``weights`` is a column name).
    out : str or sequence of str
        'model', 'models' and/or 'tuning'; see ``GLMSelector.output``.
    **kwargs
        Passed to ``GLMSelector``.

    Returns
    -------
    FittedGLM, list, pd.DataFrame, dict, or None
        None when no valid model was found and ``fail_if_no_valid=False``.
    """
    data = pd.DataFrame(data)
    columns = list(data.columns)

    if resp is None:
        resp = columns[0]
    elif isinstance(resp, (int, np.integer)):
        resp = columns[resp]
    if resp not in columns:
        raise ValueError(f"Response '{resp}' not found in data.")

    weight_col = kwargs.get('weights')
    if not isinstance(weight_col, str):
        weight_col = None

    if preds is None:
        preds = [c for c in columns if c != resp and c != weight_col]
    else:
        preds = [columns[p] if isinstance(p, (int, np.integer)) else p
                 for p in preds]
    missing = [p for p in preds if p not in columns]
    if missing:
        raise ValueError(f"Predictor(s) not found in data: {missing}")

    selected = list(preds)
    if weight_col is not None:
        selected.append(weight_col)

    mdl = GLMSelector(**kwargs)
    mdl.fit(data[selected], data[resp])
    if mdl.model_ is None:
        return None
    return mdl.output(out)
