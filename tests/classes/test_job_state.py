from race_sync.classes.job_state import InMemoryJobStateStore, SheetCellJobStateStore


def test_in_memory_store():
    store = InMemoryJobStateStore()
    store.set_session("100")
    store.mark_unit("09/05/25", "100")

    assert store.get_session() == "100"
    assert store.get_unit("09/05/25") == "100"

    store.clear_unit("09/05/25")
    store.clear_unit("missing")
    store.clear_session()

    assert store.get_session() is None
    assert store.get_unit("09/05/25") is None


def test_sheet_cell_store_round_trips_markers(workbook, repo):
    workbook.add_sheet("TEE")
    workbook.add_sheet("09/05/25")
    store = SheetCellJobStateStore(repo, "TEE", "BS1", "BS2")

    assert store.get_session() is None

    store.set_session("1757000000000")
    store.mark_unit("09/05/25", "1757000000000")

    assert workbook.cell("TEE", "BS1") == "1757000000000"
    assert workbook.cell("09/05/25", "BS2") == "1757000000000"
    assert store.get_unit("09/05/25") == "1757000000000"
    assert workbook.ranges_written("RAW") == ["'TEE'!BS1", "'09/05/25'!BS2"]

    store.clear_session()
    store.clear_unit("09/05/25")

    assert store.get_session() is None
    assert store.get_unit("09/05/25") is None


def test_sheet_cell_store_stringifies_numeric_markers(workbook, repo):
    workbook.add_sheet("TEE")
    workbook.set_cell("TEE", "BS1", 1757000000000.0)
    store = SheetCellJobStateStore(repo, "TEE", "BS1", "BS2")

    assert store.get_session() == "1757000000000"
