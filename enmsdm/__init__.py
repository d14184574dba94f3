"""
enmsdm: species distribution and ecological niche modelling tools.

The core is an automated GLM construction and selection engine: candidate
terms are ranked by AICc, a "full" model is assembled under a
data-per-term budget, and every marginality-respecting sub-model is
evaluated to pick the most parsimonious one.
"""

from .executors import PoolExecutor, SequentialExecutor, make_executor
from .fitting import FitResult, FittedGLM, aicc, fit_glm
from .glm import GLMSelector, train_glm
from .preprocess import ScaleParameters, calc_weights, scale_predictors
from .selection import (
    NoValidModelError,
    assemble_full_model,
    construct_terms,
    enumerate_subsets,
    select_model,
)
from .terms import Formula, Interaction, Linear, Quadratic, generate_terms

__version__ = "0.1.0"

__all__ = [
    "GLMSelector", "train_glm",
    "Formula", "Linear", "Quadratic", "Interaction", "generate_terms",
    "FitResult", "FittedGLM", "fit_glm", "aicc",
    "construct_terms", "assemble_full_model", "enumerate_subsets",
    "select_model", "NoValidModelError",
    "ScaleParameters", "calc_weights", "scale_predictors",
    "SequentialExecutor", "PoolExecutor", "make_executor",
]
