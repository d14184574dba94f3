"""
Input validation, site weights and predictor standardisation.
"""

import warnings
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .fitting import is_binomial


# ---------------------------------------------------------------------------
# Data validation / cleaning
# ---------------------------------------------------------------------------

def is_factor(series):
    return isinstance(series.dtype, pd.CategoricalDtype)


def validate_data(X, y, weights=True, family='binomial', verbose=False):
    """
    Validate inputs, handle missing data, and convert to pandas objects.

    Cleaning steps
    --------------
    1.  Convert X / y to DataFrame / Series if they aren't already.
    2.  If *weights* names a column of X, pull it out as the weight vector.
    3.  Convert non-numeric predictors (strings, booleans, objects) to
        categorical factors with sorted levels.
    4.  Drop rows with a missing response, predictor or weight, so every
        candidate model sees exactly the same rows.
    5.  Check a binomial response is coded 0/1.

    Returns
    -------
    X_clean : pd.DataFrame
    y_clean : pd.Series
    weights : bool or pd.Series
        Unchanged when boolean, otherwise aligned to the cleaned rows.
    """
    # --- Convert types ---------------------------------------------------
    if isinstance(X, np.ndarray):
        X = pd.DataFrame(X, columns=[f"X{i}" for i in range(X.shape[1])])
    elif not isinstance(X, pd.DataFrame):
        X = pd.DataFrame(X)

    if isinstance(y, np.ndarray):
        y = pd.Series(y.ravel(), name="y")
    elif not isinstance(y, pd.Series):
        y = pd.Series(y, name="y")
    if y.name is None:
        y = y.rename("y")

    if len(X) != len(y):
        raise ValueError(
            f"X has {len(X)} rows but the response has {len(y)}."
        )

    X = X.reset_index(drop=True).copy()
    y = y.reset_index(drop=True).copy()
    X.columns = [str(c) for c in X.columns]
    y.name = str(y.name)

    # --- Weights ---------------------------------------------------------
    if weights is None:
        weights = False
    if isinstance(weights, str):
        if weights not in X.columns:
            raise ValueError(f"Weight column '{weights}' not found.")
        weights = pd.to_numeric(X.pop(weights))
    elif not isinstance(weights, (bool, np.bool_)):
        weights = pd.Series(np.asarray(weights, dtype=float).ravel())
        if len(weights) != len(X):
            raise ValueError(
                f"Expected {len(X)} weights, got {len(weights)}."
            )

    if X.shape[1] == 0:
        raise ValueError("At least one predictor is required.")
    if y.name in X.columns:
        raise ValueError(
            f"Response '{y.name}' is also listed as a predictor."
        )

    cleaning_actions = []

    # --- Factors ---------------------------------------------------------
    for col in X.columns:
        if is_factor(X[col]):
            continue
        if not pd.api.types.is_numeric_dtype(X[col]) \
                or pd.api.types.is_bool_dtype(X[col]):
            levels = sorted(X[col].dropna().unique().tolist(), key=str)
            X[col] = pd.Categorical(X[col], categories=levels)
            cleaning_actions.append(
                f"Treating '{col}' as a factor with {len(levels)} level(s)"
            )

    # --- Drop incomplete rows --------------------------------------------
    missing = X.isna().any(axis=1) | y.isna()
    if not isinstance(weights, (bool, np.bool_)):
        missing |= weights.isna()
    if missing.any():
        cleaning_actions.append(
            f"Dropped {int(missing.sum())} row(s) with missing values"
        )
        keep = ~missing
        X = X.loc[keep].reset_index(drop=True)
        y = y.loc[keep].reset_index(drop=True)
        if not isinstance(weights, (bool, np.bool_)):
            weights = weights.loc[keep].reset_index(drop=True)

    if len(X) == 0:
        raise ValueError("No complete rows remain after cleaning.")

    # --- Response --------------------------------------------------------
    y = pd.to_numeric(y).astype(float)
    if is_binomial(family) and not y.isin([0, 1]).all():
        raise ValueError(
            "A binomial response must be coded 0 (background/absence) "
            "and 1 (presence)."
        )

    # --- Report -----------------------------------------------------------
    if verbose and cleaning_actions:
        print("DATA CLEANING")
        print("-" * 70)
        for action in cleaning_actions:
            print(f"  * {action}")
        print(f"  Final dataset: n={len(X)}, p={X.shape[1]}")
        print()

    return X, y, weights


def sample_size(y, family):
    """Presences for binomial responses, otherwise rows."""
    if is_binomial(family):
        return float(np.sum(y))
    return float(len(y))


# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------

def calc_weights(w, y, family='binomial'):
    """
    Site weights.

    Parameters
    ----------
    w : bool or array-like
        True: for binomial families presences get weight 1 and background
        sites ``n_pres / n_bg`` so both classes carry the same total weight;
        other families get uniform weights.  False: uniform weights.
        Array-like: used as given.
    y : array-like
        Response.
    family : str or statsmodels Family

    Returns
    -------
    np.ndarray
    """
    y = np.asarray(y, dtype=float)
    n = len(y)

    if isinstance(w, (bool, np.bool_)):
        if not w or not is_binomial(family):
            return np.ones(n)
        n_pres = np.sum(y == 1)
        n_bg = np.sum(y == 0)
        if n_pres == 0 or n_bg == 0:
            return np.ones(n)
        return np.where(y == 1, 1.0, n_pres / n_bg)

    w = np.asarray(w, dtype=float).ravel()
    if len(w) != n:
        raise ValueError(f"Expected {n} weights, got {len(w)}.")
    if not np.all(np.isfinite(w)) or np.any(w < 0):
        raise ValueError("Weights must be finite and non-negative.")
    return w


# ---------------------------------------------------------------------------
# Standardisation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScaleParameters:
    """Training means and standard deviations of non-factor predictors."""

    mean: pd.Series
    sd: pd.Series

    def transform(self, X):
        """Standardise the matching columns of *X* (returns a copy)."""
        X = X.copy()
        for col in self.mean.index:
            if col in X.columns:
                X[col] = (X[col] - self.mean[col]) / self.sd[col]
        return X

    def to_dict(self):
        """``{"mean": {name: value}, "sd": {name: value}}``."""
        return {'mean': self.mean.to_dict(), 'sd': self.sd.to_dict()}


def scale_predictors(scale, X, tol=0.1):
    """
    Centre and scale non-factor predictors.

    Parameters
    ----------
    scale : bool or None
        True: standardise and return the parameters.  None: leave the data
        alone but warn if any non-factor predictor does not already look
        standardised (|mean| > tol or |sd - 1| > tol).  False: do nothing.
    X : pd.DataFrame
        Predictors only.

    Returns
    -------
    X : pd.DataFrame
    scales : ScaleParameters or None
    """
    numeric = [c for c in X.columns if not is_factor(X[c])]

    if scale is None:
        if numeric:
            means = X[numeric].mean()
            sds = X[numeric].std()
            off = [c for c in numeric
                   if abs(means[c]) > tol or abs(sds[c] - 1) > tol]
            if off:
                warnings.warn(
                    f"Predictor(s) {off} do not appear to be centred and "
                    f"scaled. Consider scale=True.",
                    UserWarning, stacklevel=3,
                )
        return X, None

    if not scale or not numeric:
        return X, None

    means = X[numeric].mean()
    sds = X[numeric].std()
    flat = sds[~(sds > 0)].index.tolist()
    if flat:
        raise ValueError(f"Cannot scale zero-variance predictor(s): {flat}")

    scales = ScaleParameters(mean=means, sd=sds)
    return scales.transform(X), scales
