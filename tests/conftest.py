import json

import numpy as np
import pytest

from seat_forecast.parties import parse_party
from seat_forecast.snapshot import ConstituencyProbabilities, Snapshot


def build_constituency(name, *pairs, url=''):
    """pairs are (label, probability); labels go through the normal party parser."""
    return ConstituencyProbabilities.from_pairs(
        name, url or f'https://manifold.markets/test/{name.lower().replace(" ", "-")}',
        [(parse_party(label) if isinstance(label, str) else label, p) for label, p in pairs])


@pytest.fixture
def make_constituency():
    return build_constituency


@pytest.fixture
def rng():
    return np.random.default_rng(20240704)


@pytest.fixture
def sample_snapshot():
    return Snapshot('2024-06-20T09:15:02Z', (
        build_constituency('Burnley', ('Labour', 0.80), ('Reform', 0.12), ('Conservative', 0.08)),
        build_constituency('Islington North', ('Independent: Jeremy Corbyn', 0.55), ('Labour', 0.45)),
        build_constituency('Chorley', ('Speaker', 0.97), ('Other', 0.03)),
        build_constituency('Bath', ('Liberal Democrats', 0.85), ('Conservative', 0.10),
                           ('Labour', 0.03), ('Green', 0.02)),
    ))


@pytest.fixture
def snapshot_file(tmp_path):
    def write(doc, name='constituencies.json'):
        path = tmp_path / name
        path.write_text(json.dumps(doc), encoding='utf-8')
        return path
    return write
