from seat_forecast.constituency_stats import (
    ConstituencyStats, favourite, make_constituency_stats, winning_constituencies,
)
from seat_forecast.parties import PartyName, Unparsed
from seat_forecast.snapshot import ConstituencyProbabilities, PartyProbability


def test_headline_probabilities_and_ranks(make_constituency):
    c = make_constituency('Bath', ('Liberal Democrats', 0.85), ('Conservative', 0.10),
                          ('Labour', 0.03), ('Green', 0.02))
    stats = make_constituency_stats(c)
    assert stats.lib_dem_probability == 0.85
    assert stats.conservative_probability == 0.10
    assert stats.labour_probability == 0.03
    assert stats.green_probability == 0.02
    assert stats.reform_probability is None
    assert stats.other_probability is None
    assert abs(stats.favourite_lead - 0.75) < 1e-12
    assert stats.third_place_probability == 0.03


def test_rank_fields_absent_with_few_parties(make_constituency):
    single = make_constituency_stats(make_constituency('A', ('Labour', 1.0)))
    assert single.favourite_lead is None
    assert single.third_place_probability is None

    pair = make_constituency_stats(make_constituency('B', ('Reform', 0.3), ('Labour', 0.7)))
    assert abs(pair.favourite_lead - 0.4) < 1e-12
    assert pair.third_place_probability is None

    empty = make_constituency_stats(ConstituencyProbabilities('C', '', ()))
    assert empty == ConstituencyStats()


def test_favourite_lead_never_negative_for_unsorted_records():
    # Built directly, bypassing from_pairs, so parties are not pre-sorted
    c = ConstituencyProbabilities('D', '', (
        PartyProbability(PartyName.GREEN, 0.1),
        PartyProbability(PartyName.LABOUR, 0.6),
        PartyProbability(PartyName.REFORM, 0.3),
    ))
    stats = make_constituency_stats(c)
    assert abs(stats.favourite_lead - 0.3) < 1e-12
    assert stats.third_place_probability == 0.1


def test_custom_tracked_parties(make_constituency):
    c = make_constituency('E', ('Labour', 0.6), ('Reform', 0.4))
    stats = make_constituency_stats(c, tracked={'reform_probability': PartyName.REFORM})
    assert stats.reform_probability == 0.4
    assert stats.labour_probability is None


def test_stats_dict_round_trip(make_constituency):
    stats = make_constituency_stats(make_constituency('F', ('Labour', 0.5), ('Other', 0.5)))
    assert ConstituencyStats.from_dict(stats.to_dict()) == stats


def test_favourite_tie_goes_to_first_listed(make_constituency):
    c = make_constituency('G', ('Green', 0.4), ('Labour', 0.4), ('Other', 0.2))
    assert favourite(c) == PartyName.GREEN


def test_winning_constituencies_ranking(make_constituency):
    constituencies = [
        make_constituency('A', ('Labour', 0.9), ('Reform', 0.1)),
        make_constituency('B', ('Reform', 0.6), ('Labour', 0.4)),
        make_constituency('C', ('Labour', 0.7), ('Green', 0.3)),
        make_constituency('D', ('Conservative', 0.5), ('Labour', 0.5)),
        make_constituency('E', ('Speaker', 1.0)),
        make_constituency('F', ('Aardvark Party', 1.0)),
        ConstituencyProbabilities('Empty', '', ()),
    ]
    assert winning_constituencies(constituencies) == [
        (PartyName.LABOUR, 2),
        (PartyName.CONSERVATIVES, 1),
        (PartyName.REFORM, 1),
        (Unparsed('Aardvark Party'), 1),
        (Unparsed('Speaker'), 1),
    ]


def test_winning_constituencies_independent_of_input_order(make_constituency):
    constituencies = [
        make_constituency('A', ('Green', 1.0)),
        make_constituency('B', ('SNP', 1.0)),
        make_constituency('C', ('Labour', 1.0)),
    ]
    forward = winning_constituencies(constituencies)
    backward = winning_constituencies(list(reversed(constituencies)))
    assert forward == backward == [
        (PartyName.LABOUR, 1), (PartyName.SNP, 1), (PartyName.GREEN, 1)]
