"""
Reversible-jump MCMC over closed B-spline boundaries.

The chain state is (J, knots, coefficients). Every sweep does:

  1. Coefficient sub-step (Metropolis-within-Gibbs). For i = 1 .. J-6 in
     turn, propose c_i' = c_i + N(0, 0.1) and accept with

         min(1, exp(-(R' - R)) * prior ratio)

     under an Exponential(rate 10) prior. The spline-tail c_{J-5} is left
     as it is. c_0 is closed once after the loop.

  2. Dimension sub-step. With the Poisson(mu) prior P on J,

         b = 0.5 * min(1, P(J+1) / P(J))
         d = 0.5 * min(1, P(J-1) / P(J))
         r = max(1 - b - d, 0)

     draw birth / death / relocate. Birth inserts a knot near an existing
     interior knot together with a coefficient, death removes one, relocate
     moves one and redraws its coefficient. Knot t_j (index in the full
     sequence) maps to coefficient c_{j-2}, the basis function centred on it.

  3. Append the state to the trace.

Acceptance ratios are computed in log space. A proposal whose closure has
no root (RootFindingFailure) is rejected; an impossible move
(DegenerateMove) is logged and skipped. Both leave the state unchanged.

Classes:
    ChainState         - One (knots, coefficients) state with its risk
    SamplerDiagnostics - Proposal / acceptance counters
    SamplerRun         - Trace + diagnostics of a finished run
    RJMCMCSampler      - The chain

Functions:
    move_probabilities - (b, d, r) at knot count J
    insert_knot        - Deterministic birth
    remove_knot        - Deterministic death
    move_knot          - Deterministic relocation
    log_birth_ratio    - Birth acceptance ratio (log)
    log_death_ratio    - Death acceptance ratio (log)

IMPORTANT: No unicode characters allowed (Windows charmap constraint).
"""

import logging
import math
from collections import Counter

import numpy as np
from scipy.stats import norm, poisson

from boundary import spline
from boundary.constants import (
    TWO_PI,
    N_PAD,
    MIN_KNOTS,
    DEFAULT_MAX_KNOTS,
    DEFAULT_MU,
    INITIAL_INTERIOR_KNOTS,
    INITIAL_COEF_LOW,
    INITIAL_COEF_HIGH,
    COEF_PROPOSAL_SD,
    KNOT_PROPOSAL_SCALE,
    KNOT_EDGE_OFFSET,
    COEF_PRIOR_RATE,
)
from boundary.errors import ConfigurationError, DegenerateMove, RootFindingFailure

log = logging.getLogger(__name__)

BIRTH = "birth"
DEATH = "death"
RELOCATE = "relocate"
MOVES = (BIRTH, DEATH, RELOCATE)


class ChainState:
    """
    One state of the chain.

    Parameters
    ----------
    knots : numpy.ndarray
        Sorted knot sequence, length J.
    coefficients : numpy.ndarray
        Closed coefficient vector, length J - 4.
    risk : float, optional
        Gibbs risk of this boundary, when already known.
    """

    def __init__(self, knots, coefficients, risk=None):
        self.knots = np.asarray(knots, dtype=float)
        self.coefficients = np.asarray(coefficients, dtype=float)
        self.risk = risk

    @property
    def J(self):
        return len(self.knots)

    @property
    def n_interior(self):
        return len(self.knots) - 2 * N_PAD

    def radius(self, theta):
        """r(theta) of this boundary."""
        return spline.evaluate(theta, self.knots, self.coefficients)

    def to_dict(self):
        return {
            "J": self.J,
            "knots": [float(t) for t in self.knots],
            "coefficients": [float(c) for c in self.coefficients],
            "risk": None if self.risk is None else float(self.risk),
        }


# =====================================================================
# MOVE PROBABILITIES
# =====================================================================

def move_probabilities(J, mu=DEFAULT_MU, max_knots=DEFAULT_MAX_KNOTS):
    """
    Birth, death and relocate probabilities at knot count J.

    Births are disabled at max_knots and deaths at MIN_KNOTS, so the knot
    count never leaves [MIN_KNOTS, max_knots].

    Returns
    -------
    tuple of float
        (b, d, r), summing to 1.
    """
    log_p = poisson.logpmf(J, mu)
    b = 0.0
    d = 0.0
    if J + 1 <= max_knots:
        b = 0.5 * min(1.0, math.exp(poisson.logpmf(J + 1, mu) - log_p))
    if J - 1 >= MIN_KNOTS:
        d = 0.5 * min(1.0, math.exp(poisson.logpmf(J - 1, mu) - log_p))
    return b, d, max(1.0 - b - d, 0.0)


def _log_dimension_term(J_from, J_to, mu, max_knots):
    """log of P(J_to)/P(J_from) times the reverse/forward move probabilities."""
    b_from, d_from, _ = move_probabilities(J_from, mu, max_knots)
    b_to, d_to, _ = move_probabilities(J_to, mu, max_knots)
    if J_to > J_from:
        forward, reverse = b_from, d_to
    else:
        forward, reverse = d_from, b_to
    if forward <= 0.0 or reverse <= 0.0:
        return -math.inf
    return (poisson.logpmf(J_to, mu) - poisson.logpmf(J_from, mu)
            + math.log(reverse) - math.log(forward))


def knot_mixture_logpdf(x, knots):
    """
    log density of a birth location x proposed from the given knots.

    The birth proposal picks an interior knot uniformly and perturbs it by
    N(0, 1/J), so the location density is an equal-weight Gaussian
    mixture over the interior knots.
    """
    inner = spline.interior(knots)
    sd = KNOT_PROPOSAL_SCALE / len(knots)
    return float(np.log(np.mean(norm.pdf(x, loc=inner, scale=sd))))


# =====================================================================
# DETERMINISTIC MOVES
# =====================================================================

def _check_new_knot(knots, x):
    if not 0.0 < x < TWO_PI:
        raise DegenerateMove("knot {:.6f} outside (0, 2*pi)".format(x))
    if np.any(spline.interior(knots) == x):
        raise DegenerateMove("knot {:.6f} collides with an existing knot".format(x))


def _interior_index(state, j):
    if state.n_interior < 1:
        raise DegenerateMove("no interior knot available")
    if not N_PAD <= j < state.J - N_PAD:
        raise DegenerateMove("knot index {} is not interior".format(j))


def insert_knot(state, x, coefficient):
    """
    Birth: insert knot x and its coefficient, then close the curve.

    Parameters
    ----------
    state : ChainState
        Current state (J knots).
    x : float
        New interior knot location in (0, 2*pi).
    coefficient : float
        Value of the new coefficient.

    Returns
    -------
    tuple
        (new_state, p, base) with p the index of x in the new knot sequence
        and base the coefficient the proposal perturbs (c_{p-2} before the
        insertion).

    Raises
    ------
    DegenerateMove
        x is outside (0, 2*pi) or equal to an existing knot.
    RootFindingFailure
        The new curve cannot be closed.
    """
    _check_new_knot(state.knots, x)
    p = int(np.searchsorted(state.knots, x))
    base = float(state.coefficients[p - 2])
    knots = np.insert(state.knots, p, x)
    coefficients = np.insert(state.coefficients, p - 2, coefficient)
    return ChainState(knots, spline.close_curve(knots, coefficients)), p, base


def remove_knot(state, j):
    """
    Death: remove interior knot j and coefficient c_{j-2}, then close.

    Returns
    -------
    tuple
        (new_state, x, removed, base) with x the removed knot, removed the
        removed coefficient and base the coefficient that the reverse birth
        would perturb (c_{j-2} of the new state).

    Raises
    ------
    DegenerateMove
        j is not an interior index, or removal would leave no interior knot.
    RootFindingFailure
        The new curve cannot be closed.
    """
    _interior_index(state, j)
    if state.J - 1 < MIN_KNOTS:
        raise DegenerateMove("cannot remove a knot below {} knots".format(MIN_KNOTS))
    x = float(state.knots[j])
    removed = float(state.coefficients[j - 2])
    knots = np.delete(state.knots, j)
    coefficients = np.delete(state.coefficients, j - 2)
    new_state = ChainState(knots, spline.close_curve(knots, coefficients))
    return new_state, x, removed, float(new_state.coefficients[j - 2])


def move_knot(state, j, x, coefficient):
    """
    Relocate: move interior knot j to x and set its coefficient.

    The knot keeps its coefficient slot relative to its new sorted
    position. The knot count is unchanged.

    Returns
    -------
    ChainState
    """
    _interior_index(state, j)
    knots = np.delete(state.knots, j)
    coefficients = np.delete(state.coefficients, j - 2)
    _check_new_knot(knots, x)
    p = int(np.searchsorted(knots, x))
    knots = np.insert(knots, p, x)
    coefficients = np.insert(coefficients, p - 2, coefficient)
    return ChainState(knots, spline.close_curve(knots, coefficients))


# =====================================================================
# ACCEPTANCE RATIOS
# =====================================================================

def _log_coef_proposal(value, base):
    return float(norm.logpdf(value, loc=base, scale=COEF_PROPOSAL_SD))


def log_birth_ratio(old, new, x, coefficient, base, mu=DEFAULT_MU,
                    max_knots=DEFAULT_MAX_KNOTS):
    """
    log acceptance ratio of a birth old (J knots) -> new (J + 1 knots).

        -(R_new - R_old) + log[P(J+1)/P(J) * d_{J+1}/b_J]
        + log(1 / (J - 7)) - log q_mix(x | old) - log phi(c_new - base)

    where 1/(J-7) is the chance that the reverse death picks the new knot.
    """
    if coefficient < 0.0:
        return -math.inf
    J = old.J
    return (-(new.risk - old.risk)
            + _log_dimension_term(J, J + 1, mu, max_knots)
            - math.log(new.n_interior)
            - knot_mixture_logpdf(x, old.knots)
            - _log_coef_proposal(coefficient, base))


def log_death_ratio(old, new, x, removed, base, mu=DEFAULT_MU,
                    max_knots=DEFAULT_MAX_KNOTS):
    """
    log acceptance ratio of a death old (J knots) -> new (J - 1 knots).

    The exact reciprocal of the birth new -> old that would re-insert the
    removed knot x with coefficient removed perturbed from base.
    """
    J = old.J
    return (-(new.risk - old.risk)
            + _log_dimension_term(J, J - 1, mu, max_knots)
            + math.log(old.n_interior)
            + knot_mixture_logpdf(x, new.knots)
            + _log_coef_proposal(removed, base))


def log_relocate_ratio(old, new, coefficient, previous):
    """
    log acceptance ratio of a relocation.

        -(R_new - R_old) + log phi(c_new - c_old)

    No knot-proposal term is included.
    """
    if coefficient < 0.0:
        return -math.inf
    return -(new.risk - old.risk) + _log_coef_proposal(coefficient, previous)


# =====================================================================
# DIAGNOSTICS
# =====================================================================

class SamplerDiagnostics:
    """Running proposal and acceptance counts of one chain."""

    def __init__(self):
        self.proposed = Counter()
        self.accepted = Counter()
        self.coef_proposed = 0
        self.coef_accepted = 0
        self.closure_failures = 0
        self.skipped = 0

    @property
    def births(self):
        return self.accepted[BIRTH]

    @property
    def deaths(self):
        return self.accepted[DEATH]

    @property
    def relocations(self):
        return self.accepted[RELOCATE]

    @property
    def coef_acceptance_rate(self):
        if self.coef_proposed == 0:
            return 0.0
        return self.coef_accepted / self.coef_proposed

    def to_dict(self):
        return {
            "proposed": {m: self.proposed[m] for m in MOVES},
            "accepted": {m: self.accepted[m] for m in MOVES},
            "coefficient_acceptance_rate": round(self.coef_acceptance_rate, 4),
            "closure_failures": self.closure_failures,
            "skipped_moves": self.skipped,
        }


class SamplerRun:
    """
    Result of RJMCMCSampler.run().

    Parameters
    ----------
    trace : list of ChainState
        One state per sweep, burn-in included.
    n_burn : int
        Number of leading burn-in sweeps in the trace.
    diagnostics : SamplerDiagnostics
    """

    def __init__(self, trace, n_burn, diagnostics):
        self.trace = trace
        self.n_burn = n_burn
        self.diagnostics = diagnostics

    @property
    def posterior(self):
        """Trace with the burn-in removed."""
        return self.trace[self.n_burn:]

    def knot_counts(self, include_burn=False):
        states = self.trace if include_burn else self.posterior
        return np.array([s.J for s in states], dtype=int)


# =====================================================================
# SAMPLER
# =====================================================================

class RJMCMCSampler:
    """
    Reversible-jump sampler of the Gibbs posterior over boundaries.

    Parameters
    ----------
    evaluator : GibbsRiskEvaluator
        Risk of candidate boundaries on the fixed observations.
    mu : float, optional
        Prior mean knot count (default 18).
    max_knots : int, optional
        Upper bound on the knot count.
    seed : int or numpy.random.Generator, optional
        Source of randomness. Equal seeds reproduce equal traces.
    """

    def __init__(self, evaluator, mu=DEFAULT_MU, max_knots=DEFAULT_MAX_KNOTS,
                 seed=None):
        if mu <= 0:
            raise ConfigurationError("mu must be positive")
        if max_knots < MIN_KNOTS + 1:
            raise ConfigurationError(
                "max_knots must be at least {}".format(MIN_KNOTS + 1))
        self.evaluator = evaluator
        self.mu = float(mu)
        self.max_knots = int(max_knots)
        self.rng = seed if isinstance(seed, np.random.Generator) \
            else np.random.default_rng(seed)
        self.diagnostics = SamplerDiagnostics()

    # -----------------------------------------------------------------
    # State construction
    # -----------------------------------------------------------------

    def _scored(self, state):
        state.risk = self.evaluator.risk(state.knots, state.coefficients)
        return state

    def initial_state(self):
        """
        Starting state: 18 equally spaced knots, c_1 .. c_{J-5} ~ U[0.1, 0.4].

        Raises
        ------
        RootFindingFailure
            The starting curve cannot be closed (fatal).
        """
        knots = spline.initial_knots(INITIAL_INTERIOR_KNOTS)
        coefficients = self.rng.uniform(INITIAL_COEF_LOW, INITIAL_COEF_HIGH,
                                        size=len(knots) - N_PAD)
        coefficients = spline.close_curve(knots, coefficients)
        return self._scored(ChainState(knots, coefficients))

    def _accept(self, log_ratio):
        if log_ratio >= 0.0:
            return True
        u = self.rng.random()
        return (math.log(u) if u > 0.0 else -math.inf) < log_ratio

    # -----------------------------------------------------------------
    # Coefficient sub-step
    # -----------------------------------------------------------------

    def _log_prior_ratio(self, new, old):
        if new < 0.0:
            return -math.inf
        return -COEF_PRIOR_RATE * (new - old)

    def update_coefficients(self, state):
        """
        One Metropolis-within-Gibbs pass over c_1 .. c_{J-6}.

        The first coefficient is re-derived by closure afterwards and the
        last (spline-tail) coefficient is not visited.

        Returns a new closed state; if the closure fails the pass is
        discarded and the input state returned.
        """
        basis = spline.design_matrix(self.evaluator.observations.theta, state.knots)
        coefficients = state.coefficients.copy()
        risk = state.risk
        n_coef = len(coefficients)

        for i in range(1, n_coef - 1):
            old = coefficients[i]
            new = old + self.rng.normal(0.0, COEF_PROPOSAL_SD)
            log_prior = self._log_prior_ratio(new, old)
            self.diagnostics.coef_proposed += 1
            if log_prior == -math.inf:
                continue
            coefficients[i] = new
            new_risk = self.evaluator.risk_from_boundary(basis @ coefficients)
            if self._accept(-(new_risk - risk) + log_prior):
                risk = new_risk
                self.diagnostics.coef_accepted += 1
            else:
                coefficients[i] = old

        try:
            coefficients[0] = spline.resolve_closure(state.knots, coefficients)
        except RootFindingFailure as e:
            self.diagnostics.closure_failures += 1
            log.debug("coefficient pass discarded: %s", e)
            return state
        return ChainState(state.knots, coefficients,
                          self.evaluator.risk_from_boundary(basis @ coefficients))

    # -----------------------------------------------------------------
    # Dimension sub-step
    # -----------------------------------------------------------------

    def _knot_sd(self, state):
        return KNOT_PROPOSAL_SCALE / state.J

    def _pick_interior(self, state):
        if state.n_interior < 1:
            raise DegenerateMove("no interior knot available")
        return N_PAD + int(self.rng.integers(state.n_interior))

    def _propose_birth(self, state):
        j = self._pick_interior(state)
        x = state.knots[j] + self.rng.normal(0.0, self._knot_sd(state))
        # reflect into [0, 2*pi], then keep clear of the end points
        if x < 0.0:
            x = -x
        elif x > TWO_PI:
            x = 2.0 * TWO_PI - x
        x = float(np.clip(x, KNOT_EDGE_OFFSET, TWO_PI - KNOT_EDGE_OFFSET))
        p = int(np.searchsorted(state.knots, x))
        coefficient = state.coefficients[p - 2] + self.rng.normal(0.0, COEF_PROPOSAL_SD)
        new, _, base = insert_knot(state, x, coefficient)
        self._scored(new)
        return new, log_birth_ratio(state, new, x, coefficient, base,
                                    self.mu, self.max_knots)

    def _propose_death(self, state):
        j = self._pick_interior(state)
        new, x, removed, base = remove_knot(state, j)
        self._scored(new)
        return new, log_death_ratio(state, new, x, removed, base,
                                    self.mu, self.max_knots)

    def _propose_relocate(self, state):
        j = self._pick_interior(state)
        x = state.knots[j] + self.rng.normal(0.0, self._knot_sd(state))
        x = float(np.clip(x, KNOT_EDGE_OFFSET, TWO_PI - KNOT_EDGE_OFFSET))
        previous = state.coefficients[j - 2]
        coefficient = previous + self.rng.normal(0.0, COEF_PROPOSAL_SD)
        new = self._scored(move_knot(state, j, x, coefficient))
        return new, log_relocate_ratio(state, new, coefficient, previous)

    def choose_move(self, state):
        b, d, _ = move_probabilities(state.J, self.mu, self.max_knots)
        u = self.rng.random()
        if u < b:
            return BIRTH
        if u < b + d:
            return DEATH
        return RELOCATE

    def update_dimension(self, state):
        """
        One birth / death / relocate proposal.

        Returns the accepted state, or the input state if the proposal is
        rejected, cannot be closed, or is degenerate.
        """
        move = self.choose_move(state)
        propose = {
            BIRTH: self._propose_birth,
            DEATH: self._propose_death,
            RELOCATE: self._propose_relocate,
        }[move]
        self.diagnostics.proposed[move] += 1
        try:
            new, log_ratio = propose(state)
        except RootFindingFailure as e:
            self.diagnostics.closure_failures += 1
            log.debug("%s rejected: %s", move, e)
            return state
        except DegenerateMove as e:
            self.diagnostics.skipped += 1
            log.warning("%s skipped at J=%d: %s", move, state.J, e)
            return state

        if self._accept(log_ratio):
            self.diagnostics.accepted[move] += 1
            return new
        return state

    # -----------------------------------------------------------------
    # Driver
    # -----------------------------------------------------------------

    def sweep(self, state):
        """Coefficient sub-step followed by one dimension move."""
        return self.update_dimension(self.update_coefficients(state))

    def run(self, n_mcmc, n_burn=0, state=None):
        """
        Run n_burn + n_mcmc sweeps.

        Parameters
        ----------
        n_mcmc : int
            Sweeps kept after burn-in.
        n_burn : int, optional
            Leading sweeps discarded at summarization time (still traced).
        state : ChainState, optional
            Starting state (default: initial_state()).

        Returns
        -------
        SamplerRun
        """
        if n_mcmc < 1 or n_burn < 0:
            raise ConfigurationError("n_mcmc must be >= 1 and n_burn >= 0")
        if state is None:
            state = self.initial_state()
        elif state.risk is None:
            self._scored(state)

        total = n_burn + n_mcmc
        trace = []
        for sweep in range(total):
            state = self.sweep(state)
            trace.append(state)
            if (sweep + 1) % 1000 == 0:
                log.info("sweep %d/%d: J=%d risk=%.2f", sweep + 1, total,
                         state.J, state.risk)

        d = self.diagnostics
        log.info("chain done: births=%d deaths=%d relocations=%d coef_acc=%.3f",
                 d.births, d.deaths, d.relocations, d.coef_acceptance_rate)
        return SamplerRun(trace, n_burn, d)
