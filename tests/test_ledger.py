from datetime import datetime

from sql_unify.history.ledger import HistoryLedger


def test_records_get_increasing_ids_and_timestamps():
    ledger = HistoryLedger()
    before = datetime.now()

    first = ledger.record("SELECT 1", row_count=1, elapsed=0.01)
    second = ledger.record("SELECT 2", row_count=1, elapsed=0.02)

    assert (first.id, second.id) == (1, 2)
    assert before <= first.timestamp <= second.timestamp
    assert [r.sql_text for r in ledger] == ["SELECT 1", "SELECT 2"]


def test_clear_empties_but_ids_keep_increasing():
    ledger = HistoryLedger()
    ledger.record("SELECT 1", row_count=1, elapsed=0.0)
    ledger.clear()

    assert len(ledger) == 0
    assert ledger.record("SELECT 3", row_count=0, elapsed=0.0).id == 2


def test_to_frame():
    ledger = HistoryLedger()
    ledger.record("SELECT 1", row_count=4, elapsed=0.5)

    frame = ledger.to_frame()

    assert list(frame.columns) == ["id", "timestamp", "sql_text", "elapsed", "row_count"]
    assert frame.loc[0, "row_count"] == 4
