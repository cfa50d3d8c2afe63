import json

import pytest
import requests

from seat_forecast import manifold_etl
from seat_forecast.config import MANIFOLD_API_BASE
from seat_forecast.manifold_etl import (
    ManifoldError, answers_to_pairs, extract_constituency_name, fetch_snapshot,
)
from seat_forecast.parties import PartyName, Unparsed
from seat_forecast.snapshot import load_snapshot


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')


class FakeSession:
    """Serves canned responses per URL; a list of responses is consumed in order."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        response = self.routes.get(url)
        if response is None:
            raise requests.ConnectionError(f'no route to {url}')
        if isinstance(response, list):
            return response.pop(0) if len(response) > 1 else response[0]
        return response


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(manifold_etl.time, 'sleep', lambda seconds: None)


def market_url(market_id):
    return f'{MANIFOLD_API_BASE}/market/{market_id}'


@pytest.mark.parametrize('question, expected', [
    ('UK General Election: Which party will win in Altrincham and Sale West?', 'Altrincham and Sale West'),
    ('UK General Election: Which party will win Ynys Môn?', 'Ynys Môn'),
    ('Which party will win in Burnley? (2024)', 'Burnley'),
    ('Will Rishi Sunak keep his seat?', None),
    ('Which party will win in ?', None),
])
def test_extract_constituency_name(question, expected):
    assert extract_constituency_name(question) == expected


def test_answers_merge_onto_same_party():
    pairs = answers_to_pairs('Islington North', [
        {'text': 'Independent: Jeremy Corbyn', 'probability': 0.5},
        {'text': 'Labour', 'probability': 0.4},
        {'text': 'Independent', 'probability': 0.05},
        {'text': 'Monster Raving Loony', 'probability': 0.05},
    ])
    assert pairs == [
        (PartyName.INDEPENDENT, 0.55),
        (PartyName.LABOUR, 0.4),
        (Unparsed('Monster Raving Loony'), 0.05),
    ]


def test_fetch_snapshot(tmp_path):
    session = FakeSession({
        f'{MANIFOLD_API_BASE}/markets': FakeResponse([
            {'id': 'm1', 'question': 'UK General Election: Which party will win in Burnley?',
             'url': 'https://manifold.markets/a/burnley'},
            {'id': 'm2', 'question': 'Something unrelated'},
            {'id': 'm3', 'question': 'UK General Election: Which party will win in Chorley?',
             'url': 'https://manifold.markets/a/chorley'},
            {'id': 'm4', 'question': 'UK General Election: Which party will win in Bath?'},
        ]),
        market_url('m1'): FakeResponse({'answers': [
            {'text': 'Reform', 'probability': 0.15}, {'text': 'Labour', 'probability': 0.85}]}),
        market_url('m3'): FakeResponse({'answers': [{'text': 'Speaker', 'probability': 1.0}]}),
        market_url('m4'): FakeResponse(status_code=500),
    })
    snapshot = fetch_snapshot(session, group_id='g1', delay=0)

    assert [c.constituency for c in snapshot.constituencies] == ['Burnley', 'Chorley']
    burnley = snapshot.constituencies[0]
    assert burnley.manifold_url == 'https://manifold.markets/a/burnley'
    assert [e.party for e in burnley.parties] == [PartyName.LABOUR, PartyName.REFORM]
    assert snapshot.constituencies[1].parties[0].party == Unparsed('Speaker')
    assert session.calls[0] == (f'{MANIFOLD_API_BASE}/markets', {'groupId': 'g1', 'limit': 1000})

    out = tmp_path / 'constituencies.json'
    manifold_etl.save_snapshot(snapshot, out)
    assert load_snapshot(out) == snapshot


def test_limit_caps_markets():
    markets = [{'id': f'm{i}', 'question': f'Which party will win in Seat {i}?'} for i in range(5)]
    routes = {f'{MANIFOLD_API_BASE}/markets': FakeResponse(markets)}
    routes.update({market_url(f'm{i}'): FakeResponse({'answers': [{'text': 'Labour', 'probability': 1}]})
                   for i in range(5)})
    snapshot = fetch_snapshot(FakeSession(routes), limit=2, delay=0)
    assert len(snapshot.constituencies) == 2


def test_rate_limit_is_retried():
    session = FakeSession({
        f'{MANIFOLD_API_BASE}/markets': FakeResponse([
            {'id': 'm1', 'question': 'Which party will win in Burnley?'}]),
        market_url('m1'): [FakeResponse(status_code=429),
                           FakeResponse({'answers': [{'text': 'Labour', 'probability': 1.0}]})],
    })
    snapshot = fetch_snapshot(session, delay=0)
    assert len(snapshot.constituencies) == 1
    assert sum(1 for url, _ in session.calls if url == market_url('m1')) == 2


def test_rate_limited_to_the_end_logs_failure(monkeypatch, caplog):
    waits = []
    monkeypatch.setattr(manifold_etl.time, 'sleep', waits.append)
    session = FakeSession({market_url('m1'): FakeResponse(status_code=429)})
    with caplog.at_level('ERROR', logger='ManifoldETL'):
        assert manifold_etl.get_market_answers(session, 'm1') is None
    assert len(session.calls) == manifold_etl.MAX_RETRIES
    assert waits == [10 * (i + 1) for i in range(manifold_etl.MAX_RETRIES - 1)]
    assert 'FAILED to fetch market m1' in caplog.text


def test_group_listing_failure_is_fatal():
    with pytest.raises(ManifoldError):
        fetch_snapshot(FakeSession({}), delay=0)


def test_main_writes_snapshot(tmp_path, monkeypatch):
    session = FakeSession({
        f'{MANIFOLD_API_BASE}/markets': FakeResponse([
            {'id': 'm1', 'question': 'Which party will win in Burnley?', 'url': 'u'}]),
        market_url('m1'): FakeResponse({'answers': [{'text': 'Labour', 'probability': 1.0}]}),
    })
    monkeypatch.setattr(manifold_etl, 'make_session', lambda: session)
    out = tmp_path / 'snap.json'
    manifold_etl.main(['--output', str(out)])
    doc = json.loads(out.read_text(encoding='utf-8'))
    assert doc['constituencies'] == [{'constituency': 'Burnley',
                                      'parties': [{'name': 'Labour', 'probability': 1.0}],
                                      'manifold_url': 'u'}]


def test_main_exits_when_group_unavailable(tmp_path, monkeypatch):
    monkeypatch.setattr(manifold_etl, 'make_session', lambda: FakeSession({}))
    out = tmp_path / 'snap.json'
    with pytest.raises(SystemExit) as exc:
        manifold_etl.main(['--output', str(out)])
    assert exc.value.code == 1
    assert not out.exists()
