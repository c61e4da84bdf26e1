"""
Tests for quote and invoice services: payments, conversion, sending and
the customer quote statistics kept alongside.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import IllegalTransitionError, NotFoundError, ValidationError
from bizdocs.schemas.invoice import InvoiceCreate, InvoiceUpdate, PaymentCreate
from bizdocs.schemas.quote import QuoteCreate, QuoteUpdate
from bizdocs.schemas.types import LineItemIn
from bizdocs.services import invoice_service, quote_service
from bizdocs.services.email_service import MockEmailService


def _items(*pairs) -> list[LineItemIn]:
    return [
        LineItemIn(name=f"Item {i}", quantity=Decimal(str(qty)), unit_price=Decimal(str(price)))
        for i, (qty, price) in enumerate(pairs, start=1)
    ]


async def _invoice(db, company, customer, total=100, **kwargs):
    return await invoice_service.create_invoice(
        db,
        company,
        None,
        InvoiceCreate(
            customer_id=customer.id,
            title="Monthly service",
            items=_items((1, total)),
            tax_rate=Decimal("0"),
            **kwargs,
        ),
    )


async def _quote(db, company, customer, items=None):
    return await quote_service.create_quote(
        db,
        company,
        None,
        QuoteCreate(customer_id=customer.id, title="Office fit-out", items=items or _items((2, 50), (1, 30))),
    )


class TestPayments:

    @pytest.mark.asyncio
    async def test_full_payment_marks_invoice_paid(self, test_db: AsyncSession, company, customer):
        invoice = await _invoice(test_db, company, customer)

        invoice = await invoice_service.add_payment(
            test_db, company.id, invoice.id, PaymentCreate(amount=Decimal("100")),
        )

        assert invoice.paid_amount == Decimal("100")
        assert invoice.status == "paid"
        assert invoice.paid_at is not None
        assert invoice.balance_due == 0

    @pytest.mark.asyncio
    async def test_partial_payment_leaves_status(self, test_db: AsyncSession, company, customer):
        invoice = await _invoice(test_db, company, customer)

        invoice = await invoice_service.add_payment(
            test_db, company.id, invoice.id, PaymentCreate(amount=Decimal("40"), payment_method="card"),
        )

        assert invoice.paid_amount == Decimal("40")
        assert invoice.status == "draft"
        assert invoice.balance_due == Decimal("60")
        assert invoice.payments[0]["payment_method"] == "card"
        assert invoice.payments[0]["payment_date"] == date.today().isoformat()

    @pytest.mark.asyncio
    async def test_payments_accumulate(self, test_db: AsyncSession, company, customer):
        invoice = await _invoice(test_db, company, customer)
        await invoice_service.transition_invoice(test_db, company.id, invoice.id, "send")

        await invoice_service.add_payment(test_db, company.id, invoice.id, PaymentCreate(amount=Decimal("60")))
        invoice = await invoice_service.add_payment(
            test_db, company.id, invoice.id, PaymentCreate(amount=Decimal("40")),
        )

        assert len(invoice.payments) == 2
        assert invoice.status == "paid"

    @pytest.mark.asyncio
    async def test_no_payments_on_cancelled_invoice(self, test_db: AsyncSession, company, customer):
        invoice = await _invoice(test_db, company, customer)
        await invoice_service.transition_invoice(test_db, company.id, invoice.id, "cancel")

        with pytest.raises(IllegalTransitionError):
            await invoice_service.add_payment(
                test_db, company.id, invoice.id, PaymentCreate(amount=Decimal("10")),
            )

    @pytest.mark.asyncio
    async def test_paid_invoice_cannot_be_edited(self, test_db: AsyncSession, company, customer):
        invoice = await _invoice(test_db, company, customer)
        await invoice_service.add_payment(test_db, company.id, invoice.id, PaymentCreate(amount=Decimal("100")))

        with pytest.raises(IllegalTransitionError):
            await invoice_service.update_invoice(test_db, company.id, invoice.id, InvoiceUpdate(title="Changed"))


class TestInvoiceWrites:

    @pytest.mark.asyncio
    async def test_defaults_come_from_company(self, test_db: AsyncSession, company, customer):
        invoice = await invoice_service.create_invoice(
            test_db,
            company,
            None,
            InvoiceCreate(customer_id=customer.id, title="Repairs", items=_items((1, 200))),
        )

        assert invoice.tax_rate == Decimal("10")
        assert invoice.terms == "Net 30"
        assert invoice.total == Decimal("220.00")
        assert invoice.due_date == invoice_service.default_due_date()

    @pytest.mark.asyncio
    async def test_update_items_recomputes_totals(self, test_db: AsyncSession, company, customer):
        invoice = await _invoice(test_db, company, customer)

        invoice = await invoice_service.update_invoice(
            test_db, company.id, invoice.id, InvoiceUpdate(items=_items((3, 10))),
        )

        assert invoice.subtotal == Decimal("30.00")
        assert invoice.total == Decimal("30.00")

    @pytest.mark.asyncio
    async def test_customer_of_another_company_is_rejected(
        self, test_db: AsyncSession, company, other_customer,
    ):
        with pytest.raises(NotFoundError):
            await _invoice(test_db, company, other_customer)

    @pytest.mark.asyncio
    async def test_invoice_of_another_company_is_not_found(
        self, test_db: AsyncSession, company, other_company, customer,
    ):
        invoice = await _invoice(test_db, company, customer)
        with pytest.raises(NotFoundError):
            await invoice_service.add_payment(
                test_db, other_company.id, invoice.id, PaymentCreate(amount=Decimal("1")),
            )

    @pytest.mark.asyncio
    async def test_mark_overdue_only_touches_late_sent_invoices(self, test_db: AsyncSession, company, customer):
        yesterday = date.today() - timedelta(days=1)
        late = await _invoice(test_db, company, customer, due_date=yesterday)
        await invoice_service.transition_invoice(test_db, company.id, late.id, "send")
        draft = await _invoice(test_db, company, customer, due_date=yesterday)
        current = await _invoice(test_db, company, customer, due_date=date.today() + timedelta(days=5))
        await invoice_service.transition_invoice(test_db, company.id, current.id, "send")

        changed = await invoice_service.mark_overdue_invoices(test_db, company.id)

        assert [invoice.id for invoice in changed] == [late.id]
        assert late.status == "overdue"
        assert draft.status == "draft"
        assert current.status == "sent"


class TestQuoteConversion:

    @pytest.mark.asyncio
    async def test_convert_sent_quote(self, test_db: AsyncSession, company, customer):
        quote = await _quote(test_db, company, customer)
        await quote_service.transition_quote(test_db, company.id, quote.id, "send")

        invoice = await invoice_service.convert_quote(test_db, company, quote.id)

        assert invoice.items == quote.items
        assert invoice.total == quote.total == Decimal("143.00")
        assert invoice.original_quote_id == quote.id
        assert quote.converted_invoice_id == invoice.id
        assert invoice.status == "draft"
        assert invoice.invoice_number == "INV-00001"

    @pytest.mark.asyncio
    async def test_draft_quote_cannot_be_converted(self, test_db: AsyncSession, company, customer):
        quote = await _quote(test_db, company, customer)
        with pytest.raises(IllegalTransitionError):
            await invoice_service.convert_quote(test_db, company, quote.id)

    @pytest.mark.asyncio
    async def test_quote_converts_once(self, test_db: AsyncSession, company, customer):
        quote = await _quote(test_db, company, customer)
        quote.status = "accepted"
        await test_db.flush()
        await invoice_service.convert_quote(test_db, company, quote.id)

        with pytest.raises(IllegalTransitionError):
            await invoice_service.convert_quote(test_db, company, quote.id)

    @pytest.mark.asyncio
    async def test_deleting_invoice_unlinks_quote(self, test_db: AsyncSession, company, customer):
        quote = await _quote(test_db, company, customer)
        quote.status = "accepted"
        await test_db.flush()
        invoice = await invoice_service.convert_quote(test_db, company, quote.id)

        await invoice_service.delete_invoice(test_db, company.id, invoice.id)

        assert quote.converted_invoice_id is None

    @pytest.mark.asyncio
    async def test_deleting_converted_quote_keeps_invoice(self, test_db: AsyncSession, company, customer):
        quote = await _quote(test_db, company, customer)
        quote.status = "accepted"
        await test_db.flush()
        invoice = await invoice_service.convert_quote(test_db, company, quote.id)

        await quote_service.delete_quote(test_db, company.id, quote.id)
        await test_db.commit()

        await test_db.refresh(invoice)
        assert invoice.original_quote_id is None
        assert await quote_service.quotes(test_db, company.id).count() == 0


class TestSending:

    @pytest.mark.asyncio
    async def test_send_quote_emails_customer(self, test_db: AsyncSession, company, customer, mock_email):
        quote = await _quote(test_db, company, customer)

        quote, result = await quote_service.send_quote(test_db, company, quote.id, mock_email)

        assert quote.status == "sent"
        assert quote.sent_at is not None
        assert result["success"] is True
        sent = mock_email._sent_emails[0]
        assert sent["to"] == "jane.doe@example.com"
        assert quote.quote_number in sent["subject"]
        assert "143.00" in sent["body"]

    @pytest.mark.asyncio
    async def test_email_failure_keeps_sent_status(self, test_db: AsyncSession, company, customer):
        invoice = await _invoice(test_db, company, customer)
        failing = MockEmailService(fail_with="Mailbox unavailable")

        invoice, result = await invoice_service.send_invoice(test_db, company, invoice.id, failing)

        assert result == {
            "success": False,
            "error": "Mailbox unavailable",
            "status_code": 500,
            "message_id": None,
        }
        await test_db.refresh(invoice)
        assert invoice.status == "sent"

    @pytest.mark.asyncio
    async def test_sending_twice_fails(self, test_db: AsyncSession, company, customer, mock_email):
        quote = await _quote(test_db, company, customer)
        await quote_service.send_quote(test_db, company, quote.id, mock_email)

        with pytest.raises(IllegalTransitionError):
            await quote_service.send_quote(test_db, company, quote.id, mock_email)
        assert len(mock_email._sent_emails) == 1


class TestCustomerQuoteStats:

    @pytest.mark.asyncio
    async def test_stats_follow_quote_writes(self, test_db: AsyncSession, company, customer):
        first = await _quote(test_db, company, customer)
        second = await _quote(test_db, company, customer, items=_items((1, 100)))

        assert customer.total_quotes == 2
        assert customer.total_value == Decimal("253.00")

        await quote_service.update_quote(test_db, company.id, second.id, QuoteUpdate(items=_items((1, 200))))
        assert customer.total_value == Decimal("363.00")

        await quote_service.delete_quote(test_db, company.id, first.id)
        await quote_service.delete_quote(test_db, company.id, second.id)

        assert customer.total_quotes == 0
        assert customer.total_value == Decimal("0")

    @pytest.mark.asyncio
    async def test_duplicate_creates_fresh_draft(self, test_db: AsyncSession, company, customer):
        quote = await _quote(test_db, company, customer)
        quote.status = "sent"
        await test_db.flush()

        copy = await quote_service.duplicate_quote(test_db, company, None, quote.id)

        assert copy.status == "draft"
        assert copy.title == "Office fit-out (Copy)"
        assert copy.quote_number == "Q-0002"
        assert copy.total == quote.total
        assert customer.total_quotes == 2


class TestCustomerStatement:

    @pytest.mark.asyncio
    async def test_ledger_with_opening_and_running_balance(self, test_db: AsyncSession, company, customer):
        march = await _invoice(test_db, company, customer, total=100)
        april = await _invoice(test_db, company, customer, total=250)
        void = await _invoice(test_db, company, customer, total=999)
        march.created_at = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
        april.created_at = datetime(2026, 4, 2, 9, 0, tzinfo=timezone.utc)
        void.created_at = datetime(2026, 4, 3, 9, 0, tzinfo=timezone.utc)
        void.status = "cancelled"
        await test_db.flush()
        await invoice_service.add_payment(
            test_db, company.id, march.id, PaymentCreate(amount=Decimal("40"), payment_date=date(2026, 3, 20)),
        )
        await invoice_service.add_payment(
            test_db, company.id, april.id, PaymentCreate(amount=Decimal("50"), payment_date=date(2026, 4, 5)),
        )

        statement = await invoice_service.customer_statement(
            test_db, company, customer.id, date(2026, 4, 1), date(2026, 4, 30), today=date(2026, 5, 1),
        )

        assert statement["customer_name"] == "Jane Doe"
        assert statement["currency"] == "USD"
        assert statement["opening_balance"] == Decimal("60.00")
        assert [(e["entry_type"], e["reference"], e["balance"]) for e in statement["entries"]] == [
            ("invoice", april.invoice_number, Decimal("310.00")),
            ("payment", april.invoice_number, Decimal("260.00")),
        ]
        assert statement["entries"][0]["description"] == "Item 1"
        assert statement["total_charges"] == Decimal("250.00")
        assert statement["total_payments"] == Decimal("50.00")
        assert statement["closing_balance"] == Decimal("260.00")

    @pytest.mark.asyncio
    async def test_reversed_range_is_rejected(self, test_db: AsyncSession, company, customer):
        with pytest.raises(ValidationError) as exc_info:
            await invoice_service.customer_statement(
                test_db, company, customer.id, date(2026, 5, 1), date(2026, 4, 1),
            )
        assert exc_info.value.errors[0]["field"] == "start_date"

    @pytest.mark.asyncio
    async def test_other_company_customer(self, test_db: AsyncSession, company, other_customer):
        with pytest.raises(NotFoundError):
            await invoice_service.customer_statement(
                test_db, company, other_customer.id, date(2026, 4, 1), date(2026, 4, 30),
            )
