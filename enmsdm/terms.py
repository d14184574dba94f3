"""
Model terms and candidate formulae.

A term is one of three variants: ``Linear(x)``, ``Quadratic(x)`` or
``Interaction(x1, x2)``.  A ``Formula`` is an ordered set of unique terms
with an implicit intercept.  Formulae are only turned into text at the
boundary with the design-matrix builder (patsy), via ``Formula.rhs``.
"""

import keyword
from dataclasses import dataclass


def quote_name(name):
    """Return *name* as a patsy-safe variable reference."""
    if name.isidentifier() and not keyword.iskeyword(name):
        return name
    return "Q({!r})".format(name)


# ---------------------------------------------------------------------------
# Term variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Linear:
    """Main effect of a single predictor."""

    name: str

    @property
    def predictors(self):
        return (self.name,)

    def marginals(self):
        return ()

    def __str__(self):
        return quote_name(self.name)


@dataclass(frozen=True)
class Quadratic:
    """Square of a (non-factor) predictor.  Requires ``Linear(name)``."""

    name: str

    @property
    def predictors(self):
        return (self.name,)

    def marginals(self):
        return (Linear(self.name),)

    def __str__(self):
        return "I({} ** 2)".format(quote_name(self.name))


@dataclass(frozen=True)
class Interaction:
    """Two-way product of predictors.  Requires both main effects."""

    first: str
    second: str

    @property
    def predictors(self):
        return (self.first, self.second)

    def marginals(self):
        return (Linear(self.first), Linear(self.second))

    def __str__(self):
        return "{}:{}".format(quote_name(self.first),
                              quote_name(self.second))


TERM_TYPES = (Linear, Quadratic, Interaction)


# ---------------------------------------------------------------------------
# Formula
# ---------------------------------------------------------------------------

class Formula:
    """
    Ordered set of unique terms.  The intercept is implicit.

    Equality and hashing ignore term order, so two formulae built from the
    same terms in a different sequence compare equal.  Iteration keeps the
    order in which terms were first added.
    """

    __slots__ = ("terms",)

    def __init__(self, terms=()):
        unique = []
        for term in terms:
            if not isinstance(term, TERM_TYPES):
                raise TypeError(f"Not a model term: {term!r}")
            if term not in unique:
                unique.append(term)
        self.terms = tuple(unique)

    def __iter__(self):
        return iter(self.terms)

    def __len__(self):
        return len(self.terms)

    def __contains__(self, term):
        return term in self.terms

    def __eq__(self, other):
        if not isinstance(other, Formula):
            return NotImplemented
        return frozenset(self.terms) == frozenset(other.terms)

    def __hash__(self):
        return hash(frozenset(self.terms))

    def __repr__(self):
        return f"Formula({str(self)!r})"

    def __str__(self):
        if not self.terms:
            return "1"
        return " + ".join(str(t) for t in self.terms)

    def union(self, other):
        """Return a new formula with the terms of *other* appended."""
        return Formula(self.terms + tuple(other))

    def linears(self):
        return tuple(t for t in self.terms if isinstance(t, Linear))

    def quadratics(self):
        return tuple(t for t in self.terms if isinstance(t, Quadratic))

    def interactions(self):
        return tuple(t for t in self.terms if isinstance(t, Interaction))

    def predictors(self):
        """Names of all predictors referenced, in order of appearance."""
        names = []
        for term in self.terms:
            for name in term.predictors:
                if name not in names:
                    names.append(name)
        return names

    def respects_marginality(self):
        return all(m in self.terms for t in self.terms for m in t.marginals())

    def rhs(self, intercept=True):
        """Right-hand side of a patsy formula for this term set."""
        body = " + ".join(str(t) for t in self.terms)
        if intercept:
            return "1 + " + body if body else "1"
        if not body:
            raise ValueError("A formula without intercept needs at least "
                             "one term.")
        return "0 + " + body


# ---------------------------------------------------------------------------
# Candidate generation
# ---------------------------------------------------------------------------

def quadratic_candidate(name):
    return Formula([Linear(name), Quadratic(name)])


def interaction_candidate(first, second):
    return Formula([Linear(first), Linear(second),
                    Interaction(first, second)])


def generate_terms(predictors, factors, sample_size, min_data_per_term,
                   quadratic=True, interaction=True):
    """
    Build the candidate term groups screened in the construction phase.

    Parameters
    ----------
    predictors : sequence of str
        Predictor names.
    factors : mapping or sequence of bool
        Whether each predictor is a factor.  Either a mapping keyed by
        predictor name or a sequence aligned with *predictors*.
    sample_size : float
        Number of presences (binary response) or rows (otherwise).
    min_data_per_term : float
        Minimum data required per estimated term.
    quadratic, interaction : bool
        Whether to emit quadratic and two-way interaction candidates.

    Returns
    -------
    list of Formula
        Linear candidates first (one per predictor), then quadratic
        candidates ``x + I(x ** 2)`` for non-factors, then interaction
        candidates ``x1 + x2 + x1:x2`` for every unordered pair.  Quadratic
        and interaction candidates are omitted (not an error) when
        ``sample_size < 2 * min_data_per_term``.
    """
    predictors = list(predictors)
    if not hasattr(factors, "get"):
        factors = dict(zip(predictors, factors))

    candidates = [Formula([Linear(p)]) for p in predictors]
    enough = sample_size >= 2 * min_data_per_term

    if quadratic and enough:
        candidates += [quadratic_candidate(p) for p in predictors
                       if not factors.get(p, False)]

    if interaction and enough and len(predictors) > 1:
        for i, first in enumerate(predictors[:-1]):
            for second in predictors[i + 1:]:
                candidates.append(interaction_candidate(first, second))

    return candidates
