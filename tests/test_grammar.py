"""
Unit tests for the message grammar and color assignment.
"""
from decimal import Decimal

import pytest

from finbox.models.schemas import ExpenseEvent, Ignored, JarEvent
from finbox.parsing.colors import CATEGORY_COLORS, FALLBACK_PALETTE, color_for
from finbox.parsing.grammar import parse


# =====================================================================
# Parser
# =====================================================================
class TestExpenseGrammar:
    def test_paid_with_category(self):
        event = parse("Mercado - 250 - Pago Categoria:Alimentação")
        assert isinstance(event, ExpenseEvent)
        assert event.label == "Mercado"
        assert event.amount == Decimal(250)
        assert event.paid is True
        assert event.category == "Alimentação"

    def test_not_paid_defaults_category(self):
        event = parse("Conta de luz - 120 - Não Pago")
        assert isinstance(event, ExpenseEvent)
        assert event.label == "Conta de luz"
        assert event.paid is False
        assert event.category == "Desconhecido"

    def test_case_insensitive_status(self):
        event = parse("aluguel - 1500 - pago")
        assert isinstance(event, ExpenseEvent)
        assert event.paid is True

    def test_empty_category_falls_back(self):
        event = parse("Lazer - 80 - Pago Categoria:   ")
        assert event.category == "Desconhecido"

    def test_accented_label(self):
        event = parse("Saúde - 90 - Pago")
        assert event.label == "Saúde"

    def test_fractional_amount_is_not_an_expense(self):
        assert parse("Mercado - 25.5 - Pago") is None


class TestJarGrammar:
    def test_credit(self):
        event = parse("Caixinha: Viagem - mais 100")
        assert event == JarEvent(jar_name="Viagem", amount=Decimal(100), direction="credit")

    def test_debit_with_fraction(self):
        event = parse("caixinha: Reserva de emergência - menos 30.75")
        assert isinstance(event, JarEvent)
        assert event.jar_name == "Reserva de emergência"
        assert event.amount == Decimal("30.75")
        assert event.direction == "debit"

    def test_jar_wins_over_expense(self):
        event = parse("Caixinha: Viagem - mais 100 - Pago")
        assert isinstance(event, JarEvent)


class TestDeletionAndMisses:
    def test_deletion_keyword_wins(self):
        assert parse("deletar Mercado - 250 - Pago") == Ignored()

    def test_deletion_keyword_any_case(self):
        assert isinstance(parse("DELETAR caixinha: Viagem - mais 10"), Ignored)

    @pytest.mark.parametrize("text", ["hello world", "", "Mercado 250 Pago"])
    def test_no_match(self, text):
        assert parse(text) is None

    def test_deterministic(self):
        text = "Transporte - 12 - Pago Categoria:Transporte"
        assert parse(text) == parse(text)


# =====================================================================
# Colors
# =====================================================================
class TestColors:
    def test_known_category(self):
        assert color_for("Mercado") == CATEGORY_COLORS["Mercado"]

    def test_stable(self):
        assert color_for("Mercado") == color_for("Mercado")
        assert color_for("Padaria") == color_for("Padaria")

    def test_fallback_by_code_point_sum(self):
        label = "Padaria"
        expected = FALLBACK_PALETTE[sum(ord(c) for c in label) % len(FALLBACK_PALETTE)]
        assert color_for(label) == expected
