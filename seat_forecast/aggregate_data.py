#!/usr/bin/env python3
"""
aggregate_data.py — Turn a constituency snapshot into the election dashboard data.

Reads constituencies.json (written by manifold_etl.py) and produces:
  - per-constituency stats (headline party probabilities, favourite lead,
    third-place probability)
  - seat favourites: how many constituencies each party is favourite in
  - a Monte Carlo seat projection (mode, median, 5th-95th band, majority %)

Usage:
    python3 -m seat_forecast.aggregate_data                      # 100,000 trials
    python3 -m seat_forecast.aggregate_data --trials 2000 --seed 7
    python3 -m seat_forecast.aggregate_data --majority-threshold 325
    python3 -m seat_forecast.aggregate_data --dry-run            # Print summary, write nothing

Output: out/election-2024.json
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from seat_forecast.aggregation import aggregate_trials
from seat_forecast.config import (
    AGGREGATE_FILE, DATA_DIR, MAJORITY_THRESHOLD, NUMBER_OF_SIMULATIONS,
    SNAPSHOT_FILE, setup_logging,
)
from seat_forecast.constituency_stats import (
    ConstituencyStats, make_constituency_stats, winning_constituencies,
)
from seat_forecast.parties import Party, decode_party, display_name, encode_party
from seat_forecast.simulation import SimulationConfigError, run_monte_carlo
from seat_forecast.snapshot import (
    ConstituencyProbabilities, SnapshotError, constituency_from_dict, constituency_to_dict,
    load_snapshot, parse_timestamp, read_json, total_probability, write_json,
)
from seat_forecast.summary import MonteCarloSummary, summarise

log = logging.getLogger('AggregateData')

# Markets whose answers sum further than this from 1 get a warning
PROBABILITY_SUM_TOLERANCE = 0.05


@dataclass(frozen=True)
class ConstituencyAggregated:
    probabilities: ConstituencyProbabilities
    stats: ConstituencyStats

    def to_dict(self):
        return {**constituency_to_dict(self.probabilities), 'stats': self.stats.to_dict()}

    @classmethod
    def from_dict(cls, data):
        return cls(constituency_from_dict(data), ConstituencyStats.from_dict(data.get('stats') or {}))


def _optional_int(data, key):
    value = data.get(key)
    if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
        raise SnapshotError(f'{key} must be an integer or null, got {value!r}')
    return value


@dataclass(frozen=True)
class AggregatedStats:
    fetched_at: str
    constituencies: Tuple[ConstituencyAggregated, ...]
    winning_constituencies: Tuple[Tuple[Party, int], ...]
    monte_carlo_summary: Tuple[MonteCarloSummary, ...]
    trials: Optional[int] = None
    majority_threshold: Optional[int] = None

    def to_dict(self):
        return {
            'fetched_at': self.fetched_at,
            'trials': self.trials,
            'majority_threshold': self.majority_threshold,
            'constituencies': [c.to_dict() for c in self.constituencies],
            'winning_constituencies': [[encode_party(party), count]
                                       for party, count in self.winning_constituencies],
            'monte_carlo_summary': [s.to_dict() for s in self.monte_carlo_summary],
        }

    @classmethod
    def from_dict(cls, data):
        """Decode an aggregate document; any structural problem is a SnapshotError."""
        if not isinstance(data, dict):
            raise SnapshotError('Aggregate document must be a JSON object')
        try:
            parse_timestamp(data['fetched_at'])
            return cls(
                fetched_at=data['fetched_at'],
                constituencies=tuple(ConstituencyAggregated.from_dict(c)
                                     for c in data['constituencies']),
                winning_constituencies=tuple((decode_party(party), int(count))
                                             for party, count in data['winning_constituencies']),
                monte_carlo_summary=tuple(MonteCarloSummary.from_dict(s)
                                          for s in data['monte_carlo_summary']),
                trials=_optional_int(data, 'trials'),
                majority_threshold=_optional_int(data, 'majority_threshold'),
            )
        except SnapshotError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotError(f'Malformed aggregate document: {e!r}') from e


def check_probability_sums(constituencies):
    for constituency in constituencies:
        total = total_probability(constituency)
        if abs(total - 1.0) > PROBABILITY_SUM_TOLERANCE:
            log.warning(f"  {constituency.constituency}: probabilities sum to {total:.3f}")


def build_aggregated_stats(snapshot, trials=NUMBER_OF_SIMULATIONS,
                           majority_threshold=MAJORITY_THRESHOLD, rng=None, seed=None):
    """Run every computation over a snapshot and return the AggregatedStats."""
    constituencies = snapshot.constituencies
    log.info(f"Aggregating {len(constituencies)} constituencies fetched at {snapshot.fetched_at}")
    check_probability_sums(constituencies)

    aggregated = tuple(ConstituencyAggregated(c, make_constituency_stats(c)) for c in constituencies)
    favourites = winning_constituencies(constituencies)

    distributions = aggregate_trials(run_monte_carlo(constituencies, trials, rng=rng, seed=seed))
    summaries = summarise(distributions, majority_threshold)

    return AggregatedStats(
        fetched_at=snapshot.fetched_at,
        constituencies=aggregated,
        winning_constituencies=tuple(favourites),
        monte_carlo_summary=tuple(summaries),
        trials=trials,
        majority_threshold=majority_threshold,
    )


def load_aggregated_stats(path):
    return AggregatedStats.from_dict(read_json(path))


def save_aggregated_stats(stats, path):
    write_json(stats.to_dict(), path)
    size_kb = Path(path).stat().st_size / 1024
    log.info(f"Saved {path} ({size_kb:.1f} KB)")


def log_summary(stats):
    log.info(f"{'='*60}")
    log.info("Seat favourites:")
    for party, count in stats.winning_constituencies:
        log.info(f"  {display_name(party):35s} {count:4d}")
    log.info(f"Monte Carlo ({stats.trials:,} trials, majority > {stats.majority_threshold}):")
    for s in stats.monte_carlo_summary:
        log.info(f"  {display_name(s.party):35s} median {s.median:4d}  "
                 f"90% {s.lower_5th:4d}-{s.upper_95th:<4d}  majority {s.majority_percentage:6.1%}")
    log.info(f"{'='*60}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Aggregate constituency market odds into seat projections')
    parser.add_argument('--input', type=Path, default=DATA_DIR / SNAPSHOT_FILE,
                        help=f'Snapshot to read (default: {DATA_DIR / SNAPSHOT_FILE})')
    parser.add_argument('--output', type=Path, default=DATA_DIR / AGGREGATE_FILE,
                        help=f'Aggregate JSON to write (default: {DATA_DIR / AGGREGATE_FILE})')
    parser.add_argument('--trials', type=int, default=NUMBER_OF_SIMULATIONS,
                        help=f'Simulated elections to run (default: {NUMBER_OF_SIMULATIONS:,})')
    parser.add_argument('--majority-threshold', type=int, default=MAJORITY_THRESHOLD,
                        help=f'Seats a party must exceed for a majority (default: {MAJORITY_THRESHOLD})')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for a reproducible run')
    parser.add_argument('--dry-run', action='store_true',
                        help='Compute and report but do not write the output file')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        snapshot = load_snapshot(args.input)
        stats = build_aggregated_stats(snapshot, trials=args.trials,
                                       majority_threshold=args.majority_threshold,
                                       seed=args.seed)
    except (SnapshotError, SimulationConfigError) as e:
        log.error(f"Aggregation failed: {e}")
        sys.exit(1)

    log_summary(stats)

    if args.dry_run:
        log.info(f"[DRY RUN] Would write {args.output}")
        return stats
    save_aggregated_stats(stats, args.output)
    return stats


if __name__ == '__main__':
    main()
