"""
snapshot.py — Constituency probability snapshots (constituencies.json).

The download step writes one snapshot per run; everything downstream treats
it as read-only. Shape:

    {
      "fetched_at": "2024-06-20T09:15:02Z",
      "constituencies": [
        {"constituency": "Burnley",
         "manifold_url": "https://manifold.markets/...",
         "parties": [{"name": "Labour", "probability": 0.91}, ...]},
        ...
      ]
    }

Party names may be wire identifiers, raw answer labels or {"Unparsed": ...}.
Raw labels that land on the same party ("Independent: A", "Independent: B")
are merged by summing; the same exact party named twice is an error.
"""

import json
import logging
import math
import re
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Tuple

from seat_forecast.parties import Party, decode_party, encode_party, is_exact_party

log = logging.getLogger('Snapshot')


class SnapshotError(ValueError):
    """A snapshot or aggregate document is unreadable or malformed."""


@dataclass(frozen=True)
class PartyProbability:
    party: Party
    probability: float


@dataclass(frozen=True)
class ConstituencyProbabilities:
    constituency: str
    manifold_url: str
    parties: Tuple[PartyProbability, ...]

    @classmethod
    def from_pairs(cls, constituency, manifold_url, pairs):
        """Build a record with parties ordered by probability, highest first.

        The sort is stable, so equal probabilities keep their input order.
        """
        parties = [PartyProbability(party, probability) for party, probability in pairs]
        seen = set()
        for entry in parties:
            if entry.party in seen:
                raise SnapshotError(
                    f"{constituency}: party {entry.party} appears more than once")
            seen.add(entry.party)
        parties.sort(key=lambda entry: -entry.probability)
        return cls(constituency, manifold_url, tuple(parties))

    def probability_of(self, party):
        for entry in self.parties:
            if entry.party == party:
                return entry.probability
        return None


@dataclass(frozen=True)
class Snapshot:
    fetched_at: str
    constituencies: Tuple[ConstituencyProbabilities, ...]

    @property
    def fetched_at_datetime(self):
        return parse_timestamp(self.fetched_at)


# chrono writes nanoseconds; fromisoformat takes at most microseconds
_EXCESS_FRACTION = re.compile(r'(\.\d{6})\d+')


def parse_timestamp(text):
    """Parse an ISO-8601 timestamp such as chrono's '2024-06-20T09:15:02.123456789Z'."""
    if not isinstance(text, str):
        raise SnapshotError(f'fetched_at must be a string, got {text!r}')
    try:
        value = datetime.fromisoformat(_EXCESS_FRACTION.sub(r'\1', text.replace('Z', '+00:00')))
    except ValueError:
        raise SnapshotError(f'fetched_at is not an ISO-8601 timestamp: {text!r}') from None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def format_timestamp(value):
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def merge_party_answers(name, answers):
    """Fold (party, probability, label) answers into (party, probability) pairs.

    label is the free-form text an answer was parsed from, or None when the
    answer named its party exactly. Answers landing on the same party are
    summed with a warning, in first-seen order. Two exact answers for one
    party raise SnapshotError.
    """
    merged = OrderedDict()
    exact = set()
    for party, probability, label in answers:
        if label is None:
            if party in exact:
                raise SnapshotError(f"{name}: party {encode_party(party)} appears more than once")
            exact.add(party)
        if party in merged:
            log.warning(f"  {name}: '{label or encode_party(party)}' merged into existing {party}")
            merged[party] += probability
        else:
            merged[party] = probability
    return list(merged.items())


def parse_party_entries(name, entries):
    """Decode a constituency's [{name, probability}, ...] list into (party, probability) pairs."""
    if not isinstance(entries, list):
        raise SnapshotError(f'{name}: parties must be a list')
    answers = []
    for entry in entries:
        if not isinstance(entry, dict) or 'name' not in entry or 'probability' not in entry:
            raise SnapshotError(f'{name}: party entry needs name and probability: {entry!r}')
        try:
            party = decode_party(entry['name'])
        except ValueError as e:
            raise SnapshotError(f'{name}: {e}') from None
        probability = entry['probability']
        if not _is_number(probability):
            raise SnapshotError(f'{name}: probability for {party} is not a number: {probability!r}')
        label = None if is_exact_party(entry['name']) else entry['name']
        answers.append((party, float(probability), label))
    return merge_party_answers(name, answers)


def encode_party_entries(parties):
    return [{'name': encode_party(entry.party), 'probability': entry.probability}
            for entry in parties]


def constituency_from_dict(record):
    if not isinstance(record, dict):
        raise SnapshotError(f'Constituency record must be an object, got {type(record).__name__}')
    name = record.get('constituency')
    if not isinstance(name, str):
        raise SnapshotError(f'Constituency record without a name: {record!r}')
    url = record.get('manifold_url', '')
    if not isinstance(url, str):
        raise SnapshotError(f'{name}: manifold_url must be a string')
    pairs = parse_party_entries(name, record.get('parties'))
    return ConstituencyProbabilities.from_pairs(name, url, pairs)


def constituency_to_dict(constituency):
    return {
        'constituency': constituency.constituency,
        'parties': encode_party_entries(constituency.parties),
        'manifold_url': constituency.manifold_url,
    }


def snapshot_from_dict(doc, default_fetched_at=None):
    """Decode a snapshot document.

    A bare list of constituency records (the old download format) is accepted
    when default_fetched_at is given.
    """
    if isinstance(doc, list):
        if default_fetched_at is None:
            raise SnapshotError('Snapshot is a bare list and has no fetched_at')
        doc = {'fetched_at': default_fetched_at, 'constituencies': doc}
    if not isinstance(doc, dict):
        raise SnapshotError(f'Snapshot must be a JSON object, got {type(doc).__name__}')
    if 'fetched_at' not in doc or 'constituencies' not in doc:
        raise SnapshotError('Snapshot needs fetched_at and constituencies')
    fetched_at = doc['fetched_at']
    parse_timestamp(fetched_at)
    records = doc['constituencies']
    if not isinstance(records, list):
        raise SnapshotError('constituencies must be a list')
    return Snapshot(fetched_at, tuple(constituency_from_dict(r) for r in records))


def snapshot_to_dict(snapshot):
    return {
        'fetched_at': snapshot.fetched_at,
        'constituencies': [constituency_to_dict(c) for c in snapshot.constituencies],
    }


def read_json(path):
    """Read a JSON file, turning I/O and syntax failures into SnapshotError."""
    try:
        with open(path, encoding='utf-8') as f:
            return json.load(f)
    except OSError as e:
        raise SnapshotError(f'Cannot read {path}: {e}') from e
    except json.JSONDecodeError as e:
        raise SnapshotError(f'{path} is not valid JSON: {e}') from e


def write_json(doc, path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(doc, f, indent=2, ensure_ascii=False)


def load_snapshot(path):
    path = Path(path)
    doc = read_json(path)
    mtime = None
    if isinstance(doc, list):
        mtime = format_timestamp(datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc))
    return snapshot_from_dict(doc, default_fetched_at=mtime)


def save_snapshot(snapshot, path):
    write_json(snapshot_to_dict(snapshot), path)


def total_probability(constituency):
    return math.fsum(entry.probability for entry in constituency.parties)

