"""
parties.py — Party identities for Westminster constituency markets.

A party is either a member of the closed PartyName enum or an Unparsed value
that keeps the market's answer text verbatim. Every label maps to one or the
other, so no answer is ever dropped.

Ordering: known parties by their position in PartyName, then Unparsed parties
by label. Use party_sort_key() wherever a deterministic order is needed.

Wire format (matches the historical snapshots):
    PartyName.LIBERAL_DEMOCRATS  <->  "LiberalDemocrats"
    Unparsed("Speaker")          <->  {"Unparsed": "Speaker"}
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union


class PartyName(Enum):
    CONSERVATIVES = 'Conservatives'
    LABOUR = 'Labour'
    LIBERAL_DEMOCRATS = 'LiberalDemocrats'
    SNP = 'SNP'
    GREEN = 'Green'
    PLAID_CYMRU = 'PlaidCymru'
    DUP = 'DUP'
    SINN_FEIN = 'SinnFein'
    SDLP = 'SDLP'
    ALLIANCE = 'Alliance'
    INDEPENDENT = 'Independent'
    WORKERS_PARTY = 'WorkersPartyOfBritain'
    REFORM = 'Reform'
    OTHER = 'Other'


@dataclass(frozen=True)
class Unparsed:
    """An answer label that is not one of the known parties."""
    label: str

    def __str__(self):
        return self.label


Party = Union[PartyName, Unparsed]

_ORDINALS = {party: i for i, party in enumerate(PartyName)}

DISPLAY_NAMES = {
    PartyName.CONSERVATIVES: 'Conservatives',
    PartyName.LABOUR: 'Labour',
    PartyName.LIBERAL_DEMOCRATS: 'Liberal Democrats',
    PartyName.SNP: 'Scottish National Party',
    PartyName.GREEN: 'Green',
    PartyName.PLAID_CYMRU: 'Plaid Cymru',
    PartyName.DUP: 'Democratic Unionist Party',
    PartyName.SINN_FEIN: 'Sinn Féin',
    PartyName.SDLP: 'Social Democratic and Labour Party',
    PartyName.ALLIANCE: 'Alliance',
    PartyName.INDEPENDENT: 'Independent',
    PartyName.WORKERS_PARTY: 'Workers Party of Britain',
    PartyName.REFORM: 'Reform',
    PartyName.OTHER: 'Other',
}

PARTY_COLORS = {
    PartyName.CONSERVATIVES: '#0087DC',
    PartyName.LABOUR: '#DC241F',
    PartyName.LIBERAL_DEMOCRATS: '#FAA61A',
    PartyName.SNP: '#FDF38E',
    PartyName.GREEN: '#6AB023',
    PartyName.PLAID_CYMRU: '#005B54',
    PartyName.DUP: '#D46A4C',
    PartyName.SINN_FEIN: '#326760',
    PartyName.SDLP: '#2AA82C',
    PartyName.ALLIANCE: '#F6CB2F',
    PartyName.INDEPENDENT: '#808080',
    PartyName.WORKERS_PARTY: '#8B0000',
    PartyName.REFORM: '#12B6CF',
    PartyName.OTHER: '#808080',
}
DEFAULT_COLOR = '#808080'

PARTY_EMOJI = {
    PartyName.CONSERVATIVES: '🌳',
    PartyName.LABOUR: '🌹',
    PartyName.LIBERAL_DEMOCRATS: '🕊️',
    PartyName.SNP: '🎗️',
    PartyName.GREEN: '🌱',
    PartyName.PLAID_CYMRU: '🌼',
    PartyName.DUP: '🦁',
    PartyName.SINN_FEIN: '🇮🇪',
    PartyName.WORKERS_PARTY: '⚙️',
}

# Answer texts as they appear on the Manifold constituency markets
PARTY_ALIASES = {
    'Conservative': PartyName.CONSERVATIVES,
    'Conservatives': PartyName.CONSERVATIVES,
    'Labour': PartyName.LABOUR,
    'Liberal Democrat': PartyName.LIBERAL_DEMOCRATS,
    'Liberal Democrats': PartyName.LIBERAL_DEMOCRATS,
    'Lib Dem': PartyName.LIBERAL_DEMOCRATS,
    'Scottish National Party': PartyName.SNP,
    'Green': PartyName.GREEN,
    'Plaid Cymru': PartyName.PLAID_CYMRU,
    'Democratic Unionist Party': PartyName.DUP,
    'Sinn Féin': PartyName.SINN_FEIN,
    'Social Democratic and Labour Party': PartyName.SDLP,
    'Alliance': PartyName.ALLIANCE,
    'Independent': PartyName.INDEPENDENT,
    'Workers Party of Britain': PartyName.WORKERS_PARTY,
    'Reform': PartyName.REFORM,
    'Reform UK': PartyName.REFORM,
    'Other': PartyName.OTHER,
}
# Wire identifiers parse back to themselves
_WIRE_IDENTIFIERS = {party.value for party in PartyName}
PARTY_ALIASES.update({party.value: party for party in PartyName})

INDEPENDENT_PREFIX = 'Independent:'


def parse_party(label):
    """Map a market answer label to a PartyName, or Unparsed if unknown."""
    trimmed = label.strip()
    if trimmed in PARTY_ALIASES:
        return PARTY_ALIASES[trimmed]
    # "Independent: Jeremy Corbyn", "Independent: Sir Lindsay Hoyle", ...
    if trimmed.startswith(INDEPENDENT_PREFIX):
        return PartyName.INDEPENDENT
    return Unparsed(trimmed)


def party_sort_key(party):
    """Total order: known parties by enum position, then unparsed by label."""
    if isinstance(party, PartyName):
        return (0, _ORDINALS[party], '')
    return (1, 0, party.label)


def display_name(party):
    if isinstance(party, PartyName):
        return DISPLAY_NAMES[party]
    return party.label


def party_color(party):
    if isinstance(party, PartyName):
        return PARTY_COLORS[party]
    return DEFAULT_COLOR


def party_emoji(party):
    if isinstance(party, PartyName):
        return PARTY_EMOJI.get(party, '')
    return ''


def encode_party(party):
    """Encode a party for JSON output."""
    if isinstance(party, PartyName):
        return party.value
    return {'Unparsed': party.label}


def is_exact_party(value):
    """True for a wire identifier or the {"Unparsed": label} form, False for a free-form label."""
    if isinstance(value, dict):
        return True
    return isinstance(value, str) and value in _WIRE_IDENTIFIERS


def decode_party(value):
    """Decode a party from JSON.

    Accepts a wire identifier, any free-form answer label, or the
    {"Unparsed": label} form. The Unparsed form is kept verbatim (no trimming)
    so that decode(encode(p)) == p for every party.
    """
    if isinstance(value, str):
        return parse_party(value)
    if isinstance(value, dict) and set(value) == {'Unparsed'} and isinstance(value['Unparsed'], str):
        return Unparsed(value['Unparsed'])
    raise ValueError(f'Not a party: {value!r}')
