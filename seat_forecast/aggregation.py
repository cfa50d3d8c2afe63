"""
aggregation.py — Fold per-trial seat maps into per-party seat vectors.

A party missing from a trial's map won no seats in that trial, so it is
counted as 0 there. Parties that never win a seat have no distribution and
do not appear in the result.
"""

import logging

import pandas as pd

from seat_forecast.parties import party_sort_key

log = logging.getLogger('SeatAggregator')


def seat_frame(trials):
    """DataFrame with one row per trial and one integer column per party."""
    frame = pd.DataFrame(list(trials))
    if frame.empty:
        return frame.astype('int64')
    columns = sorted(frame.columns, key=party_sort_key)
    return frame[columns].fillna(0).astype('int64')


def aggregate_trials(trials):
    """Return {party: seats per trial}, each an N-length int array in trial order."""
    frame = seat_frame(trials)
    log.info(f"Aggregated {len(frame):,} trials across {len(frame.columns)} parties")
    return {party: frame[party].to_numpy() for party in frame.columns}
