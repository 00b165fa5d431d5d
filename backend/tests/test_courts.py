"""
Natural ordering of court labels ("Court 2" before "Court 10").
"""

from league_scheduler.utils.courts import court_sort_key, natural_sort_key, sort_court_names


def test_numbers_compare_numerically():
    assert sort_court_names(["Court 10", "Court 2", "Court 1"]) == ["Court 1", "Court 2", "Court 10"]


def test_text_is_case_insensitive():
    assert sort_court_names(["court B", "Court a"]) == ["Court a", "court B"]


def test_mixed_labels_do_not_raise():
    names = ["Main", "12", "Court 3", "Annex 1"]

    assert sort_court_names(names) == ["12", "Annex 1", "Court 3", "Main"]


def test_empty_label_sorts_first():
    assert natural_sort_key(None) == ()
    assert natural_sort_key("") == ()


def test_court_key_orders_by_venue_then_court_then_id():
    keys = [
        court_sort_key("West Gym", "Court 1", 1),
        court_sort_key("East Gym", "Court 10", 2),
        court_sort_key("East Gym", "Court 2", 3),
    ]

    assert sorted(keys) == [keys[2], keys[1], keys[0]]
