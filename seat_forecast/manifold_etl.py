#!/usr/bin/env python3
"""
manifold_etl.py — Fetch constituency win probabilities from Manifold Markets.

Every Westminster constituency has a multiple-choice market in one Manifold
group, titled like:
    "UK General Election: Which party will win in Altrincham and Sale West?"
Each answer is a party (or an independent candidate) with a probability.

Usage:
    python3 -m seat_forecast.manifold_etl                  # Fetch all markets
    python3 -m seat_forecast.manifold_etl --limit 20       # First 20 markets only
    python3 -m seat_forecast.manifold_etl --group <id>     # A different market group
    python3 -m seat_forecast.manifold_etl --dry-run        # Preview without saving

API: https://api.manifold.markets/v0 (no auth needed for reads)

Output: out/constituencies.json
"""

import argparse
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

import requests

from seat_forecast.config import (
    DATA_DIR, MANIFOLD_API_BASE, MANIFOLD_GROUP_ID, MARKETS_PAGE_LIMIT, MAX_MARKETS,
    MAX_RETRIES, REQUEST_DELAY, REQUEST_TIMEOUT, SNAPSHOT_FILE, USER_AGENT, setup_logging,
)
from seat_forecast.parties import Unparsed, parse_party
from seat_forecast.snapshot import (
    ConstituencyProbabilities, Snapshot, format_timestamp, merge_party_answers, save_snapshot,
)

log = logging.getLogger('ManifoldETL')

QUESTION_MARKERS = ('Which party will win in ', 'Which party will win ')


class ManifoldError(Exception):
    """The market group could not be fetched."""


def make_session():
    session = requests.Session()
    session.headers.update({'Accept': 'application/json', 'User-Agent': USER_AGENT})
    return session


def api_get(session, url, desc='data', params=None):
    """GET a Manifold API URL with retries. Returns parsed JSON, or None after MAX_RETRIES failures."""
    for attempt in range(MAX_RETRIES):
        last_attempt = attempt == MAX_RETRIES - 1
        try:
            resp = session.get(url, params=params, timeout=REQUEST_TIMEOUT)
            if resp.status_code == 429:
                if last_attempt:
                    log.error(f"  FAILED to fetch {desc}: still rate limited after {MAX_RETRIES} attempts")
                    break
                wait = 10 * (attempt + 1)
                log.warning(f"  Rate limited on {desc}, waiting {wait}s...")
                time.sleep(wait)
                continue
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            if not last_attempt:
                wait = 2 ** (attempt + 1)
                log.warning(f"  Retry {attempt + 1}/{MAX_RETRIES} for {desc}: {e}. Waiting {wait}s...")
                time.sleep(wait)
            else:
                log.error(f"  FAILED to fetch {desc}: {e}")
    return None


def get_all_markets_in_group(session, group_id, limit=MAX_MARKETS):
    """List markets in a group (id, question, url)."""
    markets = api_get(session, f'{MANIFOLD_API_BASE}/markets', desc=f'group {group_id}',
                      params={'groupId': group_id, 'limit': MARKETS_PAGE_LIMIT})
    if markets is None:
        raise ManifoldError(f'Could not list markets for group {group_id}')
    if not isinstance(markets, list):
        raise ManifoldError(f'Unexpected market listing for group {group_id}: {type(markets).__name__}')
    return markets[:limit]


def get_market_answers(session, market_id):
    """Return the market's answers as [{text, probability}, ...], or None on failure."""
    market = api_get(session, f'{MANIFOLD_API_BASE}/market/{market_id}', desc=f'market {market_id}')
    if market is None:
        return None
    return market.get('answers') or []


def extract_constituency_name(question):
    """'UK General Election: Which party will win in Burnley?' -> 'Burnley'.

    Some markets drop the 'in'. Returns None if the question has neither form.
    """
    for marker in QUESTION_MARKERS:
        if marker in question:
            name = question.split(marker, 1)[1].split('?', 1)[0].strip()
            return name or None
    return None


def answers_to_pairs(constituency, answers):
    """Map answer texts to parties, merging answers that land on the same party."""
    parsed = []
    for answer in answers:
        text = answer.get('text', '')
        party = parse_party(text)
        if isinstance(party, Unparsed):
            log.info(f"  {constituency}: unrecognised answer '{text}' kept as-is")
        parsed.append((party, float(answer.get('probability', 0.0)), text))
    return merge_party_answers(constituency, parsed)


def fetch_snapshot(session, group_id=MANIFOLD_GROUP_ID, limit=MAX_MARKETS, delay=REQUEST_DELAY):
    """Fetch every constituency market in the group and build a Snapshot."""
    fetched_at = format_timestamp(datetime.now(timezone.utc))
    markets = get_all_markets_in_group(session, group_id, limit)
    log.info(f"Found {len(markets)} markets in group {group_id}")

    constituencies = []
    skipped = 0
    for i, market in enumerate(markets, 1):
        question = market.get('question', '')
        name = extract_constituency_name(question)
        if name is None:
            log.warning(f"  Skipping market {market.get('id')}: cannot read constituency from '{question}'")
            skipped += 1
            continue

        answers = get_market_answers(session, market['id'])
        if answers is None:
            skipped += 1
            continue

        constituencies.append(ConstituencyProbabilities.from_pairs(
            name, market.get('url', ''), answers_to_pairs(name, answers)))
        if i % 50 == 0:
            log.info(f"  {i}/{len(markets)} markets fetched")
        if delay:
            time.sleep(delay)

    log.info(f"Fetched {len(constituencies)} constituencies ({skipped} skipped)")
    return Snapshot(fetched_at, tuple(constituencies))


def main(argv=None):
    parser = argparse.ArgumentParser(description='Fetch constituency markets from Manifold')
    parser.add_argument('--group', type=str, default=MANIFOLD_GROUP_ID,
                        help='Manifold group id holding the constituency markets')
    parser.add_argument('--limit', type=int, default=MAX_MARKETS,
                        help=f'Maximum markets to fetch (default: {MAX_MARKETS})')
    parser.add_argument('--output', type=Path, default=DATA_DIR / SNAPSHOT_FILE,
                        help=f'Snapshot to write (default: {DATA_DIR / SNAPSHOT_FILE})')
    parser.add_argument('--dry-run', action='store_true',
                        help='Fetch and report but do not write the snapshot')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        snapshot = fetch_snapshot(make_session(), args.group, args.limit)
    except ManifoldError as e:
        log.error(str(e))
        sys.exit(1)

    if args.dry_run:
        log.info(f"[DRY RUN] Would write {len(snapshot.constituencies)} constituencies to {args.output}")
        return snapshot
    save_snapshot(snapshot, args.output)
    log.info(f"Saved {args.output}")
    return snapshot


if __name__ == '__main__':
    main()
