from race_sync.classes.reconcile import (
    ReconcileWindow,
    build_entry_key_set,
    build_single_key_set,
    entry_key,
    next_append_row,
    parse_race_id_components,
    plan_entries,
    plan_winners,
)


def test_parse_race_id_components():
    components = parse_race_id_components("GP_20250905_3")

    assert components.track_code == "GP"
    assert components.date_token == "20250905"
    assert components.race_number == 3
    assert parse_race_id_components("bad") is None
    assert parse_race_id_components(None) is None


def test_key_sets():
    rows = [["GP_20250905_3", 1.0], [], ["", 2], ["GP_20250905_4"]]

    assert build_entry_key_set(rows) == {"GP_20250905_3|1", "GP_20250905_4|"}
    assert build_single_key_set(rows) == {"GP_20250905_3", "GP_20250905_4"}
    assert entry_key("GP_20250905_3", 4.0) == "GP_20250905_3|4"


def test_next_append_row():
    assert next_append_row([["a"], ["b"], [], [""]]) == 4
    assert next_append_row([]) == 2
    assert next_append_row([[""], ["x"]], first_row=11) == 13


def _entries():
    return [
        {"race_id": "GP_20250905_3", "horse_number": 1, "ml": 5, "age": "3YO", "race_type": "MCL"},
        {"race_id": "GP_20250905_3", "horse_number": 2, "double": 4.5},
        {"race_id": "GP_20250905_3", "horse_number": 1, "ml": 5},
        {"race_id": "GP_20250905_1", "horse_number": 1},
        {"race_id": "CD_20250905_3", "horse_number": 1},
    ]


def test_plan_entries_appends_each_key_once_across_runs():
    window = ReconcileWindow(track_code="GP", date_token="20250905")
    entry_keys = set()
    metadata_keys = set()

    first = plan_entries(_entries(), entry_keys, metadata_keys, window)
    second = plan_entries(_entries(), entry_keys, metadata_keys, window)

    assert first.fetched == 5
    assert first.entry_rows == [
        ["GP_20250905_3", 1, 5, "", "", ""],
        ["GP_20250905_3", 2, "", "", "", 4.5],
    ]
    assert first.skipped == 3
    assert first.metadata_rows == [["GP_20250905_3", "3YO", "MCL", ""]]
    assert second.entry_rows == []
    assert second.metadata_rows == []
    assert second.skipped == 5


def test_plan_entries_respects_existing_sheet_keys():
    window = ReconcileWindow(track_code="GP")
    plan = plan_entries(_entries()[:2], {"GP_20250905_3|1"}, {"GP_20250905_3"}, window)

    assert [row[1] for row in plan.entry_rows] == [2]
    assert plan.metadata_rows == []


def test_plan_winners_never_replaces_existing_winner():
    window = ReconcileWindow(track_code="GP", date_token="20250905")
    winners = [
        {"race_id": "GP_20250905_3", "winning_horse_number": 5},
        {"race_id": "GP_20250905_4", "winning_horse_number": 2},
        {"race_id": "GP_20250905_5", "winning_horse_number": None},
        {"race_id": "GP_20250905_3", "winning_horse_number": 7},
    ]

    plan = plan_winners(winners, {"GP_20250905_4"}, window)

    assert plan.winner_rows == [["GP_20250905_3", 5]]
    assert plan.winners_skipped == 3
