"""
Chat message grammar.

Two textual forms are recognised, jar movements first:

    Caixinha: <name> - mais|menos <amount>
    <label> - <amount> - Pago|Não Pago [Categoria: <category>]

Any message containing the deletion keyword is reported as ``Ignored`` so the
caller can tombstone the record that originated from it.
"""
from __future__ import annotations

import re
from decimal import Decimal

from finbox.models.schemas import (
    UNKNOWN_CATEGORY,
    ExpenseEvent,
    Ignored,
    JarEvent,
)

DELETE_KEYWORD = "deletar"
CATEGORY_MARKER = "Categoria:"

# letters (accented included) separated by whitespace
_NAME = r"[^\W\d_]+(?:\s+[^\W\d_]+)*"

JAR_RE = re.compile(
    rf"Caixinha:\s*(?P<name>{_NAME})\s*-\s*(?P<op>mais|menos)\s*(?P<amount>\d+(?:\.\d+)?)",
    re.IGNORECASE,
)
EXPENSE_RE = re.compile(
    rf"(?P<label>{_NAME})\s*-\s*(?P<amount>\d+)\s*-\s*(?P<status>Pago|N[ãa]o\s+Pago)",
    re.IGNORECASE,
)


def _category(text: str) -> str:
    if CATEGORY_MARKER not in text:
        return UNKNOWN_CATEGORY
    category = text.split(CATEGORY_MARKER, 1)[1].strip()
    return category or UNKNOWN_CATEGORY


def parse(text: str) -> ExpenseEvent | JarEvent | Ignored | None:
    """Parse one chat message.

    Returns ``Ignored`` for deletion requests, ``None`` when the text matches
    neither grammar.
    """
    if DELETE_KEYWORD in text.lower():
        return Ignored()

    jar = JAR_RE.search(text)
    if jar:
        return JarEvent(
            jar_name=jar.group("name").strip(),
            amount=Decimal(jar.group("amount")),
            direction="credit" if jar.group("op").lower() == "mais" else "debit",
        )

    expense = EXPENSE_RE.search(text)
    if expense:
        return ExpenseEvent(
            label=expense.group("label").strip(),
            amount=Decimal(int(expense.group("amount"))),
            paid=expense.group("status").lower() == "pago",
            category=_category(text),
        )

    return None
