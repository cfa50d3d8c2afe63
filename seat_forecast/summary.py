"""
summary.py — Reduce each party's simulated seat totals to headline figures.

Conventions (kept identical to previously published dashboards):
  - median      sorted[floor(N / 2)], the low median for even N
  - lower_5th   sorted[floor(0.05 * N)]
  - upper_95th  sorted[floor(0.95 * N)]
  - mode        most frequent seat total; ties go to the smallest total
  - majority    share of trials with seats > majority_threshold

Percentiles are plain order statistics, not interpolated. Indices are
clamped to [0, N - 1], so tiny trial counts still produce numbers, but
below MIN_RELIABLE_TRIALS the 5th/95th bounds are little more than the
extremes.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np

from seat_forecast.config import MAJORITY_THRESHOLD, MIN_RELIABLE_TRIALS
from seat_forecast.parties import Party, decode_party, encode_party, party_sort_key

log = logging.getLogger('MonteCarloSummary')


@dataclass(frozen=True)
class MonteCarloSummary:
    party: Party
    mode: int
    median: int
    lower_5th: int
    upper_95th: int
    majority_percentage: float

    def to_dict(self):
        return {
            'party': encode_party(self.party),
            'mode': self.mode,
            'median': self.median,
            'lower_5th': self.lower_5th,
            'upper_95th': self.upper_95th,
            'majority_percentage': self.majority_percentage,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            party=decode_party(data['party']),
            mode=int(data['mode']),
            median=int(data['median']),
            lower_5th=int(data['lower_5th']),
            upper_95th=int(data['upper_95th']),
            majority_percentage=float(data['majority_percentage']),
        )


def order_statistic(sorted_seats, fraction):
    """Element at floor(fraction * N), clamped into range."""
    index = math.floor(fraction * len(sorted_seats))
    index = min(max(index, 0), len(sorted_seats) - 1)
    return int(sorted_seats[index])


def seat_mode(seats):
    # np.unique returns values ascending and argmax takes the first maximum
    values, counts = np.unique(seats, return_counts=True)
    return int(values[np.argmax(counts)])


def summarise_party(party, seats, majority_threshold=MAJORITY_THRESHOLD):
    seats = np.sort(np.asarray(seats, dtype=np.int64))
    if seats.size == 0:
        raise ValueError(f'No simulated seat totals for {party}')
    return MonteCarloSummary(
        party=party,
        mode=seat_mode(seats),
        median=int(seats[len(seats) // 2]),
        lower_5th=order_statistic(seats, 0.05),
        upper_95th=order_statistic(seats, 0.95),
        majority_percentage=float(np.count_nonzero(seats > majority_threshold)) / len(seats),
    )


def summarise(distributions, majority_threshold=MAJORITY_THRESHOLD):
    """Summarise every party's seat vector.

    Returns summaries by median seats descending, ties in party order.
    """
    summaries = [summarise_party(party, seats, majority_threshold)
                 for party, seats in distributions.items()]
    trials = {len(seats) for seats in distributions.values()}
    if trials and min(trials) < MIN_RELIABLE_TRIALS:
        log.warning(f"Only {min(trials)} trials: 5th/95th percentile bounds are unreliable "
                    f"(use at least {MIN_RELIABLE_TRIALS})")
    summaries.sort(key=lambda s: (-s.median, party_sort_key(s.party)))
    return summaries
