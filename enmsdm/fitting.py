"""
Single-model GLM fitting.

``fit_glm`` is the unit of work fanned out by the construction and selection
phases.  It turns a ``Formula`` into a design matrix with patsy, fits it with
statsmodels starting from all-zero coefficients, and reports convergence,
boundary degeneracy and AICc.  Numerical failures never escape: they are
returned as non-converged results so one bad candidate cannot abort a phase.
"""

import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd
import patsy
import statsmodels.api as sm
from statsmodels.tools.sm_exceptions import (
    PerfectSeparationError,
    PerfectSeparationWarning,
)

from .terms import Formula, quote_name


# ---------------------------------------------------------------------------
# Families and links
# ---------------------------------------------------------------------------

FAMILIES = {
    'binomial': sm.families.Binomial,
    'gaussian': sm.families.Gaussian,
    'poisson': sm.families.Poisson,
    'gamma': sm.families.Gamma,
    'inverse_gaussian': sm.families.InverseGaussian,
    'negative_binomial': sm.families.NegativeBinomial,
    'tweedie': sm.families.Tweedie,
}

LINKS = {
    'logit': sm.families.links.Logit,
    'probit': sm.families.links.Probit,
    'cloglog': sm.families.links.CLogLog,
    'log': sm.families.links.Log,
    'identity': sm.families.links.Identity,
    'inverse': sm.families.links.InversePower,
    'sqrt': sm.families.links.Sqrt,
}

# Families whose dispersion is estimated and so counts as a parameter.
_FREE_SCALE = (sm.families.Gaussian, sm.families.Gamma,
               sm.families.InverseGaussian, sm.families.Tweedie)

# Standard error per SD of the design column above this marks a fit as
# degenerate.
BOUNDARY_SE = 1e3

NUMERICAL_ERRORS = (
    np.linalg.LinAlgError,
    PerfectSeparationError,
    FloatingPointError,
    OverflowError,
    ZeroDivisionError,
    ValueError,
)


def family_name(family):
    """Lower-case name of a family given as a string or instance."""
    if isinstance(family, str):
        return family.lower()
    name = type(family).__name__
    return {'InverseGaussian': 'inverse_gaussian',
            'NegativeBinomial': 'negative_binomial'}.get(name, name.lower())


def is_binomial(family):
    return family_name(family) == 'binomial'


def get_family(family='binomial', link=None):
    """
    Resolve *family* (name or statsmodels instance) and optional *link*.

    Returns
    -------
    statsmodels.genmod.families.Family
    """
    if isinstance(family, sm.families.Family):
        if link is None:
            return family
        family = family_name(family)

    key = str(family).lower()
    if key not in FAMILIES:
        raise ValueError(
            f"Unknown family '{family}'. Choose from {sorted(FAMILIES)}."
        )

    if link is None:
        return FAMILIES[key]()
    if isinstance(link, str):
        if link.lower() not in LINKS:
            raise ValueError(
                f"Unknown link '{link}'. Choose from {sorted(LINKS)}."
            )
        link = LINKS[link.lower()]()
    return FAMILIES[key](link=link)


# ---------------------------------------------------------------------------
# AICc
# ---------------------------------------------------------------------------

def aicc(llf, k, n):
    """
    Corrected Akaike Information Criterion.

    AICc = -2 logL + 2k + 2k(k + 1) / (n - k - 1)

    Returns ``inf`` when the log-likelihood is not finite or when
    ``n - k - 1 <= 0`` (correction undefined).
    """
    if not np.isfinite(llf) or n - k - 1 <= 0:
        return np.inf
    return -2.0 * llf + 2.0 * k + 2.0 * k * (k + 1) / (n - k - 1)


def count_parameters(result, family):
    k = len(result.params)
    if isinstance(family, _FREE_SCALE):
        k += 1
    return k


# ---------------------------------------------------------------------------
# Fit results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FitResult:
    """Outcome of fitting one candidate formula."""

    formula: Formula
    coefficients: object
    converged: bool
    boundary: bool
    aicc: float
    result: object = None

    @property
    def is_valid(self):
        return self.converged and not self.boundary

    def row(self):
        return {
            'model': str(self.formula),
            'converged': self.converged,
            'boundary': self.boundary,
            'AICc': self.aicc,
        }


def _converged(result):
    flag = getattr(result, 'converged', None)
    if flag is None:
        retvals = getattr(result, 'mle_retvals', None) or {}
        flag = retvals.get('converged', False)
    return bool(flag)


def _at_boundary(result, caught):
    """
    True when an estimate is running off towards +/- infinity.

    Standard errors are measured per standard deviation of their design
    column, so the check does not depend on the units of a predictor.
    """
    if any(issubclass(w.category, PerfectSeparationWarning) for w in caught):
        return True
    params = np.asarray(result.params, dtype=float)
    if not np.all(np.isfinite(params)):
        return True
    exog = np.asarray(result.model.exog, dtype=float)
    spread = exog.std(axis=0)
    spread[spread == 0] = 1.0
    with np.errstate(all='ignore'):
        se = np.asarray(result.bse, dtype=float) * spread
    return bool(np.any(~np.isfinite(se)) or np.any(se > BOUNDARY_SE))


def design_matrices(formula, data, resp, intercept=True):
    """Response vector and design matrix for *formula* (patsy)."""
    # patsy expands a bool response into two indicator columns
    if pd.api.types.is_bool_dtype(data[resp]):
        data = data.assign(**{resp: data[resp].astype(float)})
    text = f"{quote_name(resp)} ~ {formula.rhs(intercept)}"
    return patsy.dmatrices(text, data, return_type='dataframe',
                           NA_action='raise')


def fit_glm(formula, data, resp, weights=None, family='binomial', link=None,
            method='IRLS', intercept=True, keep_model=False, maxiter=100):
    """
    Fit one GLM and summarise it.

    Parameters
    ----------
    formula : Formula
        Terms on the right-hand side (intercept added unless
        ``intercept=False``).
    data : pd.DataFrame
        Response and predictor columns.  Not modified.
    resp : str
        Name of the response column.
    weights : array-like or None
        Prior (variance) weights, one per row.
    family : str or statsmodels Family
    link : str, statsmodels Link, or None
    method : str
        statsmodels GLM fitting method ('IRLS', 'newton', 'bfgs', ...).
    keep_model : bool
        If True, the statsmodels results object is kept on the FitResult.

    Returns
    -------
    FitResult
    """
    fam = get_family(family, link)
    y, X = design_matrices(formula, data, resp, intercept=intercept)
    w = None if weights is None else np.asarray(weights, dtype=float)

    try:
        with np.errstate(all='ignore'), \
                warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always')
            model = sm.GLM(y, X, family=fam, var_weights=w)
            result = model.fit(start_params=np.zeros(X.shape[1]),
                               method=method, maxiter=maxiter)
    except NUMERICAL_ERRORS:
        return FitResult(formula=formula, coefficients=None,
                         converged=False, boundary=False, aicc=np.inf)

    criterion = aicc(result.llf, count_parameters(result, fam), X.shape[0])

    return FitResult(
        formula=formula,
        coefficients=result.params.copy(),
        converged=_converged(result),
        boundary=_at_boundary(result, caught),
        aicc=criterion,
        result=result if keep_model else None,
    )


# ---------------------------------------------------------------------------
# Fitted model wrapper
# ---------------------------------------------------------------------------

class FittedGLM:
    """
    A selected GLM together with everything needed to predict from it.

    Parameters
    ----------
    fit : FitResult
        Result of ``fit_glm(..., keep_model=True)``.
    response : str
        Response name used in training.
    scale : ScaleParameters or None
        Training-time standardisation, re-applied to new data in
        ``predict``.
    factor_levels : dict or None
        Training categories of each factor predictor.
    intercept : bool
    """

    def __init__(self, fit, response, scale=None, factor_levels=None,
                 intercept=True):
        if fit.result is None:
            raise ValueError("FittedGLM needs a FitResult fitted with "
                             "keep_model=True.")
        self.formula = fit.formula
        self.result = fit.result
        self.converged = fit.converged
        self.boundary = fit.boundary
        self.aicc = fit.aicc
        self.response = response
        self.scale = scale
        self.factor_levels = dict(factor_levels or {})
        self.intercept = intercept

    def __repr__(self):
        return (f"FittedGLM({self.response} ~ {self.formula.rhs(self.intercept)}, "
                f"AICc={self.aicc:.3f})")

    @property
    def family(self):
        return self.result.model.family

    @property
    def coefficients(self):
        return self.result.params

    @property
    def is_valid(self):
        return self.converged and not self.boundary

    def design_matrix(self, X):
        """Design matrix for new data, with training scaling and levels."""
        X = pd.DataFrame(X).copy()
        if self.scale is not None:
            X = self.scale.transform(X)
        for col, levels in self.factor_levels.items():
            if col in X.columns:
                X[col] = pd.Categorical(X[col], categories=levels)

        if not len(self.formula):
            return pd.DataFrame({'Intercept': np.ones(len(X))},
                                index=X.index)

        exog = patsy.dmatrix(self.formula.rhs(self.intercept), X,
                             return_type='dataframe', NA_action='raise')
        return exog[list(self.coefficients.index)]

    def predict(self, X, type='response'):
        """
        Predict for new data given in raw (unscaled) units.

        Parameters
        ----------
        X : pd.DataFrame
            Must contain every predictor in the formula.
        type : {'response', 'link'}

        Returns
        -------
        np.ndarray
        """
        if type not in ('response', 'link'):
            raise ValueError("type must be 'response' or 'link'.")
        exog = self.design_matrix(X)
        eta = exog.values @ self.coefficients.values
        if type == 'link':
            return eta
        return self.family.link.inverse(eta)

    def summary(self):
        return self.result.summary()
