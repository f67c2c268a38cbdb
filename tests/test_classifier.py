"""
Unit tests for splitting polled messages into events and tombstones.
"""
from datetime import datetime, timezone

from finbox.models.schemas import RawMessage
from finbox.parsing.classifier import classify

CHAT = 42
WHEN = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _msg(id: int, text: str, chat_id: int = CHAT) -> RawMessage:
    return RawMessage(id=id, chat_id=chat_id, text=text, timestamp=WHEN)


class TestClassify:
    def test_splits_by_type(self):
        batch = classify(
            [
                _msg(1, "Mercado - 250 - Pago"),
                _msg(2, "Caixinha: Viagem - mais 100"),
                _msg(3, "deletar 1"),
                _msg(4, "bom dia"),
            ],
            CHAT,
        )
        assert [e.message_id for e in batch.expense_events] == [1]
        assert [e.message_id for e in batch.jar_events] == [2]
        assert batch.tombstones == {3}
        assert batch.window_ids == {1, 2, 3, 4}
        assert batch.window_floor == 1

    def test_events_carry_source_reference(self):
        batch = classify([_msg(7, "Lazer - 40 - Pago")], CHAT)
        event = batch.expense_events[0]
        assert event.message_id == 7
        assert event.timestamp == WHEN

    def test_other_chats_discarded(self):
        batch = classify([_msg(1, "Mercado - 250 - Pago", chat_id=99)], CHAT)
        assert batch.expense_events == []
        assert batch.window_ids == set()
        assert batch.window_floor is None

    def test_unmatched_text_is_not_tombstoned(self):
        batch = classify([_msg(5, "hello world"), _msg(6, "")], CHAT)
        assert batch.tombstones == set()
        assert batch.expense_events == [] and batch.jar_events == []

    def test_duplicate_ids_keep_last_delivery(self):
        batch = classify(
            [_msg(1, "Mercado - 250 - Pago"), _msg(1, "Mercado - 300 - Pago")],
            CHAT,
        )
        assert len(batch.expense_events) == 1
        assert batch.expense_events[0].amount == 300

    def test_edit_into_deletion(self):
        batch = classify(
            [_msg(1, "Mercado - 250 - Pago"), _msg(1, "deletar")],
            CHAT,
        )
        assert batch.expense_events == []
        assert batch.tombstones == {1}
