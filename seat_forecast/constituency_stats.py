"""
constituency_stats.py — Deterministic per-constituency figures and seat favourites.

No randomness here: everything is read straight off the market probabilities.
"""

import logging
from collections import Counter
from dataclasses import asdict, dataclass, fields
from typing import Optional

from seat_forecast.parties import PartyName, party_sort_key

log = logging.getLogger('ConstituencyStats')

# Output field -> party whose probability is surfaced individually
HEADLINE_PARTIES = {
    'labour_probability': PartyName.LABOUR,
    'conservative_probability': PartyName.CONSERVATIVES,
    'lib_dem_probability': PartyName.LIBERAL_DEMOCRATS,
    'green_probability': PartyName.GREEN,
    'reform_probability': PartyName.REFORM,
    'other_probability': PartyName.OTHER,
}


@dataclass(frozen=True)
class ConstituencyStats:
    labour_probability: Optional[float] = None
    conservative_probability: Optional[float] = None
    lib_dem_probability: Optional[float] = None
    green_probability: Optional[float] = None
    reform_probability: Optional[float] = None
    other_probability: Optional[float] = None
    favourite_lead: Optional[float] = None
    third_place_probability: Optional[float] = None

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        names = {f.name for f in fields(cls)}
        unknown = set(data) - names
        if unknown:
            raise ValueError(f'Unknown stats fields: {sorted(unknown)}')
        return cls(**data)


def ranked_parties(constituency):
    """Party entries by probability, highest first; ties keep input order."""
    return sorted(constituency.parties, key=lambda entry: -entry.probability)


def make_constituency_stats(constituency, tracked=None):
    """Compute the stats block for one constituency. Never fails."""
    tracked = HEADLINE_PARTIES if tracked is None else tracked
    values = {name: constituency.probability_of(party) for name, party in tracked.items()}

    ranked = ranked_parties(constituency)
    if len(ranked) >= 2:
        values['favourite_lead'] = ranked[0].probability - ranked[1].probability
    if len(ranked) >= 3:
        values['third_place_probability'] = ranked[2].probability
    return ConstituencyStats(**values)


def favourite(constituency):
    """The single most likely party, or None for a market with no answers.

    max() keeps the first of equal maxima, which is the earliest in input order.
    """
    if not constituency.parties:
        return None
    return max(constituency.parties, key=lambda entry: entry.probability).party


def winning_constituencies(constituencies):
    """Count constituencies per favourite party.

    Returns [(party, count), ...] by count descending, then party order.
    """
    counts = Counter()
    for constituency in constituencies:
        party = favourite(constituency)
        if party is None:
            log.warning(f"No parties listed for {constituency.constituency}; no favourite")
            continue
        counts[party] += 1
    return sorted(counts.items(), key=lambda item: (-item[1], party_sort_key(item[0])))
