"""
Tests for the invoices API endpoints (/api/v1/invoices).
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal
from httpx import AsyncClient

from tests.conftest import make_user
from tests.factories import InvoiceFactory, QuoteFactory

INVOICES_PREFIX = "/api/v1/invoices"
QUOTES_PREFIX = "/api/v1/quotes"


def _payload(customer_id: int, amount="100.00", **overrides) -> dict:
    return InvoiceFactory(
        customer_id=customer_id,
        items=[{"name": "Monthly retainer", "quantity": "1", "unit_price": amount}],
        tax_rate="0",
        **overrides,
    )


async def _create(client: AsyncClient, customer_id: int, **overrides) -> dict:
    response = await client.post(f"{INVOICES_PREFIX}/", json=_payload(customer_id, **overrides))
    assert response.status_code == 201, response.text
    return response.json()


class TestInvoicePermissions:

    @pytest.mark.asyncio
    async def test_plain_user_can_read_but_not_write(
        self, authenticated_client: AsyncClient, customer, test_user, headers_for,
    ):
        invoice = await _create(authenticated_client, customer.id)
        user_headers = headers_for(test_user)

        read = await authenticated_client.get(f"{INVOICES_PREFIX}/{invoice['id']}", headers=user_headers)
        assert read.status_code == 200

        write = await authenticated_client.post(
            f"{INVOICES_PREFIX}/", json=_payload(customer.id), headers=user_headers,
        )
        assert write.status_code == 403
        assert write.json()["code"] == "AUTH_002"

    @pytest.mark.asyncio
    async def test_manager_writes_but_only_admin_deletes(
        self, authenticated_client: AsyncClient, test_db, company, customer, headers_for,
    ):
        manager = await make_user(test_db, company, "manager@acme.test", role="manager")
        manager_headers = headers_for(manager)

        created = await authenticated_client.post(
            f"{INVOICES_PREFIX}/", json=_payload(customer.id), headers=manager_headers,
        )
        assert created.status_code == 201

        invoice_id = created.json()["id"]
        denied = await authenticated_client.delete(f"{INVOICES_PREFIX}/{invoice_id}", headers=manager_headers)
        assert denied.status_code == 403

        deleted = await authenticated_client.delete(f"{INVOICES_PREFIX}/{invoice_id}")
        assert deleted.status_code == 204

    @pytest.mark.asyncio
    async def test_other_company_sees_not_found(
        self, authenticated_client: AsyncClient, customer, other_user, headers_for,
    ):
        invoice = await _create(authenticated_client, customer.id)

        response = await authenticated_client.post(
            f"{INVOICES_PREFIX}/{invoice['id']}/payments",
            json={"amount": "10.00"},
            headers=headers_for(other_user),
        )

        assert response.status_code == 404


class TestInvoiceNumbering:

    @pytest.mark.asyncio
    async def test_number_continues_company_counter(
        self, authenticated_client: AsyncClient, test_db, company, customer,
    ):
        company.next_invoice_number = 5
        await test_db.commit()

        invoice = await _create(authenticated_client, customer.id)

        assert invoice["invoice_number"] == "INV-00006"
        current = await authenticated_client.get("/api/v1/companies/current")
        assert current.json()["next_invoice_number"] == 6


class TestPayments:

    @pytest.mark.asyncio
    async def test_full_payment_marks_paid(self, authenticated_client: AsyncClient, customer):
        invoice = await _create(authenticated_client, customer.id)

        response = await authenticated_client.post(
            f"{INVOICES_PREFIX}/{invoice['id']}/payments",
            json={"amount": "100.00", "payment_method": "bank_transfer"},
        )

        data = response.json()
        assert data["status"] == "paid"
        assert Decimal(data["paid_amount"]) == Decimal("100")
        assert data["paid_at"] is not None
        assert data["payments"][0]["payment_method"] == "bank_transfer"

    @pytest.mark.asyncio
    async def test_partial_payment(self, authenticated_client: AsyncClient, customer):
        invoice = await _create(authenticated_client, customer.id)

        response = await authenticated_client.post(
            f"{INVOICES_PREFIX}/{invoice['id']}/payments", json={"amount": "40.00"},
        )

        assert response.json()["status"] == "draft"
        assert Decimal(response.json()["paid_amount"]) == Decimal("40")

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, authenticated_client: AsyncClient, customer):
        invoice = await _create(authenticated_client, customer.id)

        response = await authenticated_client.post(
            f"{INVOICES_PREFIX}/{invoice['id']}/payments", json={"amount": "0"},
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_cancelled_invoice_refuses_payment(self, authenticated_client: AsyncClient, customer):
        invoice = await _create(authenticated_client, customer.id)
        await authenticated_client.post(f"{INVOICES_PREFIX}/{invoice['id']}/cancel")

        response = await authenticated_client.post(
            f"{INVOICES_PREFIX}/{invoice['id']}/payments", json={"amount": "10.00"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "BIZ_004"

        mark_paid = await authenticated_client.post(f"{INVOICES_PREFIX}/{invoice['id']}/mark-paid")
        assert mark_paid.status_code == 400


class TestConversion:

    @pytest.mark.asyncio
    async def test_convert_sent_quote(self, authenticated_client: AsyncClient, customer):
        quote = (await authenticated_client.post(
            f"{QUOTES_PREFIX}/", json=QuoteFactory(customer_id=customer.id),
        )).json()
        await authenticated_client.post(f"{QUOTES_PREFIX}/{quote['id']}/send")
        due = (date.today() + timedelta(days=14)).isoformat()

        response = await authenticated_client.post(
            f"{INVOICES_PREFIX}/convert-from-quote/{quote['id']}", json={"due_date": due},
        )

        assert response.status_code == 201
        invoice = response.json()
        assert invoice["original_quote_id"] == quote["id"]
        assert invoice["total"] == quote["total"]
        assert invoice["due_date"] == due
        assert [item["name"] for item in invoice["items"]] == [item["name"] for item in quote["items"]]

        linked = await authenticated_client.get(f"{QUOTES_PREFIX}/{quote['id']}")
        assert linked.json()["converted_invoice_id"] == invoice["id"]

        again = await authenticated_client.post(f"{INVOICES_PREFIX}/convert-from-quote/{quote['id']}")
        assert again.status_code == 400

    @pytest.mark.asyncio
    async def test_draft_quote_cannot_convert(self, authenticated_client: AsyncClient, customer):
        quote = (await authenticated_client.post(
            f"{QUOTES_PREFIX}/", json=QuoteFactory(customer_id=customer.id),
        )).json()

        response = await authenticated_client.post(f"{INVOICES_PREFIX}/convert-from-quote/{quote['id']}")

        assert response.status_code == 400
        assert response.json()["code"] == "BIZ_004"


class TestOverdue:

    @pytest.mark.asyncio
    async def test_bulk_mark_overdue(self, authenticated_client: AsyncClient, customer):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        late = await _create(authenticated_client, customer.id, due_date=yesterday)
        await authenticated_client.post(f"{INVOICES_PREFIX}/{late['id']}/send")
        await _create(authenticated_client, customer.id, due_date=yesterday)

        response = await authenticated_client.post(f"{INVOICES_PREFIX}/mark-overdue")

        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["id"] == late["id"]
        assert data["items"][0]["status"] == "overdue"

    @pytest.mark.asyncio
    async def test_stats(self, authenticated_client: AsyncClient, customer):
        invoice = await _create(authenticated_client, customer.id)
        await authenticated_client.post(f"{INVOICES_PREFIX}/{invoice['id']}/payments", json={"amount": "30.00"})

        response = await authenticated_client.get(f"{INVOICES_PREFIX}/stats")

        overview = response.json()["overview"]
        assert overview["total_invoices"] == 1
        assert Decimal(overview["outstanding_value"]) == Decimal("70")
