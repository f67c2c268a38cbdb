"""
Split a polled window of chat messages into jar events, expense events and
tombstones.
"""
from __future__ import annotations

from loguru import logger

from finbox.models.schemas import (
    ClassifiedBatch,
    ExpenseEvent,
    Ignored,
    JarEvent,
    RawMessage,
)
from finbox.parsing.grammar import parse


def classify(messages: list[RawMessage], chat_filter: int) -> ClassifiedBatch:
    batch = ClassifiedBatch()

    # Edited messages come back with the same id; the last delivery wins
    latest: dict[int, RawMessage] = {}
    for message in messages:
        if message.chat_id != chat_filter:
            continue
        latest[message.id] = message

    for message in latest.values():
        batch.window_ids.add(message.id)
        result = parse(message.text)

        if isinstance(result, Ignored):
            batch.tombstones.add(message.id)
        elif isinstance(result, JarEvent):
            batch.jar_events.append(
                result.model_copy(
                    update={"message_id": message.id, "timestamp": message.timestamp}
                )
            )
        elif isinstance(result, ExpenseEvent):
            batch.expense_events.append(
                result.model_copy(
                    update={"message_id": message.id, "timestamp": message.timestamp}
                )
            )

    logger.info(
        "Classified {} messages: {} expenses, {} jar events, {} tombstones",
        len(latest),
        len(batch.expense_events),
        len(batch.jar_events),
        len(batch.tombstones),
    )
    return batch
