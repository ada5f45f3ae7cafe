"""
End-to-end tests through the composition root.

build_exchange_desk() wires config -> engine -> accounts -> controller ->
receipts; these tests drive a desk the way an outer layer would.
"""

import dataclasses
import random
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from exchange_config import get_active_config
from exchange_kernel.db.engine import reset_engine
from exchange_kernel.domain.clock import DeterministicClock
from exchange_kernel.domain.dtos import TransactionRecord, TransactionRequest
from exchange_kernel.domain.identity import Identity, Role
from exchange_kernel.domain.ledger_effects import TransactionType
from exchange_kernel.exceptions import InsufficientBalanceError
from exchange_services import OutboxSink, build_exchange_desk, render_receipt
from exchange_services.receipts import ReceiptNotifier


class ExplodingSink:
    def deliver(self, message):
        raise TimeoutError("relay timed out")


@pytest.fixture
def desk_config(tmp_path):
    config = get_active_config(database_url=f"sqlite:///{tmp_path / 'desk.db'}")
    ledger = dataclasses.replace(
        config.ledger,
        initial_accounts=(("TTD", Decimal("5000.00")), ("USD", Decimal("200.00"))),
    )
    yield dataclasses.replace(config, ledger=ledger)
    reset_engine()


@pytest.fixture
def outbox():
    return OutboxSink()


@pytest.fixture
def desk(desk_config, outbox):
    return build_exchange_desk(
        desk_config,
        sink=outbox,
        clock=DeterministicClock(),
        rng=random.Random(99),
    )


@pytest.fixture
def cashier():
    return Identity(id=uuid4(), role=Role.USER)


class TestDeskWiring:
    def test_accounts_seeded_from_config(self, desk):
        assert {b.currency: b.balance for b in desk.balances()} == {
            "TTD": Decimal("5000.00"),
            "USD": Decimal("200.00"),
        }

    def test_rebuild_keeps_balances(self, desk, desk_config, cashier, outbox):
        desk.controller.create(
            TransactionRequest(
                customer_name="Sam", transaction_type="Cash In",
                amount="50", currency="USD",
            ),
            cashier,
        )
        rebuilt = build_exchange_desk(desk_config, sink=outbox)
        balances = {b.currency: b.balance for b in rebuilt.balances()}
        assert balances["USD"] == Decimal("250.00")

    def test_ready_logged(self, desk_config, outbox, captured_logs):
        build_exchange_desk(desk_config, sink=outbox)
        entries = [r for r in captured_logs() if r["message"] == "exchange_desk_ready"]
        assert entries and entries[0]["receipts_enabled"] is True

    def test_receipts_disabled(self, desk_config):
        config = dataclasses.replace(
            desk_config,
            receipts=dataclasses.replace(desk_config.receipts, enabled=False),
        )
        desk = build_exchange_desk(config)
        assert desk.notifier is None


class TestDeskFlow:
    def test_buy_with_receipt_then_delete(self, desk, outbox, cashier):
        result = desk.controller.create(
            TransactionRequest(
                customer_name="Maria Lopez",
                transaction_type="Buy",
                amount="100",
                currency="usd",
                exchange_rate="6.78",
                amount_ttd="678.00",
                customer_email="maria@example.com",
                notes="Airport counter",
            ),
            cashier,
        )

        assert result.notification.delivered is True
        [message] = outbox.messages
        assert message.recipient == "maria@example.com"
        assert message.subject == f"Your Transaction Receipt - {result.record.reference}"
        assert "Amount: USD 100.00" in message.body
        assert "Amount (TTD): TTD 678.00" in message.body
        assert "Exchange Rate: 6.78" in message.body

        balances = {b.currency: b.balance for b in desk.balances()}
        assert balances == {"TTD": Decimal("4322.00"), "USD": Decimal("300.00")}

        listed = desk.list_transactions(currency="USD")
        assert [r.reference for r in listed.items] == [result.record.reference]

        desk.controller.delete(result.record.id, cashier)
        balances = {b.currency: b.balance for b in desk.balances()}
        assert balances == {"TTD": Decimal("5000.00"), "USD": Decimal("200.00")}
        assert desk.list_transactions().total == 0

    def test_overdraw_rejected(self, desk, cashier, outbox):
        with pytest.raises(InsufficientBalanceError):
            desk.controller.create(
                TransactionRequest(
                    customer_name="Sam", transaction_type="Cash Out",
                    amount="500", currency="USD", customer_email="sam@example.com",
                ),
                cashier,
            )
        assert outbox.messages == []
        assert desk.summary().rows == ()

    def test_resend_receipt(self, desk, outbox, cashier):
        record = desk.controller.create(
            TransactionRequest(
                customer_name="Sam", transaction_type="Cash In",
                amount="20", currency="USD",
            ),
            cashier,
        ).record
        assert outbox.messages == []

        outcome = desk.controller.send_receipt(record.id, email="sam@example.com")
        assert outcome.delivered is True
        assert desk.get_transaction(record.id).customer_email is None
        assert [m.recipient for m in outbox.messages] == ["sam@example.com"]

    def test_sink_failure_keeps_transaction(self, desk_config, cashier):
        desk = build_exchange_desk(desk_config, sink=ExplodingSink())
        result = desk.controller.create(
            TransactionRequest(
                customer_name="Sam", transaction_type="Cash In",
                amount="20", currency="USD", customer_email="sam@example.com",
            ),
            cashier,
        )
        assert result.notification.delivered is False
        assert desk.get_transaction(result.record.id).reference == result.record.reference


def _record(**overrides):
    fields = dict(
        id=uuid4(),
        reference="TX20240101ABC123",
        transaction_type=TransactionType.SELL,
        amount=Decimal("1234.00"),
        currency="USD",
        exchange_rate=Decimal("6.700000"),
        amount_ttd=Decimal("8267.80"),
        status="Completed",
        customer_name="Jane Customer",
        customer_email="jane@example.com",
        notes="",
        customer_signature="",
        created_by_id=uuid4(),
        created_at=datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return TransactionRecord(**fields)


class TestReceiptRendering:
    def test_conversion_receipt(self):
        body = render_receipt(_record(), "Harbour Exchange")
        assert body.startswith("Dear Jane Customer,\n")
        assert "Transaction ID: TX20240101ABC123" in body
        assert "Date: 2024-01-01 12:30" in body
        assert "Transaction Type: Sell" in body
        assert "Amount: USD 1,234.00" in body
        assert "Amount (TTD): TTD 8,267.80" in body
        assert "Exchange Rate: 6.7\n" in body
        assert body.rstrip().endswith("Regards,\nHarbour Exchange")

    def test_cash_receipt_has_no_conversion_lines(self):
        body = render_receipt(
            _record(
                transaction_type=TransactionType.CASH_IN,
                exchange_rate=Decimal("0"),
                amount_ttd=Decimal("0"),
                notes="Float top-up",
            ),
            "Harbour Exchange",
        )
        assert "Amount (TTD)" not in body
        assert "Exchange Rate" not in body
        assert "Notes: Float top-up" in body

    def test_whole_number_rate(self):
        body = render_receipt(_record(exchange_rate=Decimal("100.000000")), "X")
        assert "Exchange Rate: 100\n" in body

    def test_notifier_without_recipient(self):
        outcome = ReceiptNotifier(OutboxSink()).notify(_record(customer_email=None))
        assert outcome.delivered is False
