"""
simulation.py — Monte Carlo general elections from constituency market odds.

One trial = one simulated election: for every constituency, draw a single
winner with probability proportional to its market probability, then count
seats per party. Weights need not sum to 1.

Trials share nothing but the random generator. simulate_one_trial() is a
pure function of (weights, generator), so a batch of trials can be spread
over independently seeded generators without changing the distribution.

Every constituency must be drawable: a market with no answers, a negative or
non-finite weight, or an all-zero total raises SimulationConfigError before
any trial runs, instead of quietly dropping the seat.
"""

import logging
import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from seat_forecast.parties import Party, party_sort_key

log = logging.getLogger('MonteCarlo')

PROGRESS_STEPS = 10


class SimulationConfigError(ValueError):
    """The constituencies or parameters cannot be simulated."""


@dataclass(frozen=True)
class WeightTable:
    """Constituency weights laid out for vectorised drawing.

    parties:        every party that appears anywhere, in party order
    party_index:    (constituencies x max_parties) index into parties, -1 as padding
    cumulative:     normalised running totals per row, +inf as padding
    last_positive:  per row, the last column with a non-zero weight
    """
    parties: Tuple[Party, ...]
    party_index: np.ndarray
    cumulative: np.ndarray
    last_positive: np.ndarray

    @property
    def n_constituencies(self):
        return self.party_index.shape[0]


def validate_constituencies(constituencies):
    """Raise SimulationConfigError for any constituency that cannot produce a winner."""
    for constituency in constituencies:
        name = constituency.constituency
        if not constituency.parties:
            raise SimulationConfigError(f"{name}: no parties to draw a winner from")
        for entry in constituency.parties:
            weight = entry.probability
            if not math.isfinite(weight) or weight < 0:
                raise SimulationConfigError(
                    f"{name}: invalid weight {weight!r} for {entry.party}")
        if not any(entry.probability > 0 for entry in constituency.parties):
            raise SimulationConfigError(f"{name}: all party weights are zero")


def build_weight_table(constituencies):
    """Validate constituencies and precompute the arrays each trial draws from."""
    constituencies = list(constituencies)
    validate_constituencies(constituencies)

    parties = tuple(sorted({entry.party for c in constituencies for entry in c.parties},
                           key=party_sort_key))
    position = {party: i for i, party in enumerate(parties)}
    width = max((len(c.parties) for c in constituencies), default=0)

    party_index = np.full((len(constituencies), width), -1, dtype=np.int64)
    cumulative = np.full((len(constituencies), width), np.inf)
    last_positive = np.zeros(len(constituencies), dtype=np.int64)

    for row, constituency in enumerate(constituencies):
        weights = np.array([entry.probability for entry in constituency.parties], dtype=float)
        n = len(weights)
        party_index[row, :n] = [position[entry.party] for entry in constituency.parties]
        # Scale by the largest weight first so huge finite weights cannot overflow the sum
        running = np.cumsum(weights / weights.max())
        cumulative[row, :n] = running / running[-1]
        last_positive[row] = np.flatnonzero(weights)[-1]

    return WeightTable(parties, party_index, cumulative, last_positive)


def simulate_one_trial(constituencies, rng):
    """Run one simulated election and return {party: seats}.

    `constituencies` is either a WeightTable or anything build_weight_table()
    accepts. Each constituency adds exactly one seat to exactly one party.
    """
    table = constituencies if isinstance(constituencies, WeightTable) else build_weight_table(constituencies)
    if table.n_constituencies == 0:
        return {}

    draws = rng.random(table.n_constituencies)
    # Inverse CDF: the winner is the first column whose running total exceeds the draw
    columns = np.count_nonzero(table.cumulative <= draws[:, None], axis=1)
    columns = np.minimum(columns, table.last_positive)
    winners = table.party_index[np.arange(table.n_constituencies), columns]

    seats = np.bincount(winners, minlength=len(table.parties))
    return {table.parties[i]: int(seats[i]) for i in np.flatnonzero(seats)}


def make_rng(rng=None, seed=None):
    if rng is not None and seed is not None:
        raise ValueError('Pass either rng or seed, not both')
    if rng is not None:
        return rng
    return np.random.default_rng(seed)


def run_monte_carlo(constituencies, trials, rng=None, seed=None):
    """Yield one {party: seats} map per trial, for `trials` trials.

    Validation happens before the first trial is drawn.
    """
    if isinstance(trials, bool) or not isinstance(trials, (int, np.integer)) or trials < 1:
        raise SimulationConfigError(f'Trial count must be a positive integer, got {trials!r}')
    table = build_weight_table(constituencies)
    return _trials(table, int(trials), make_rng(rng, seed))


def _trials(table, trials, rng):
    log.info(f"Simulating {trials:,} elections over {table.n_constituencies} constituencies")
    step = max(trials // PROGRESS_STEPS, 1)
    for i in range(1, trials + 1):
        yield simulate_one_trial(table, rng)
        if i % step == 0:
            log.debug(f"  {i:,}/{trials:,} trials")
    log.info(f"Simulation complete: {trials:,} trials")
