"""Document emails over the Brevo transactional API (plain httpx, no SDK).

Sending is best effort. Every outcome, good or bad, comes back as a result
dict:

    {"success": bool, "status_code": int | None, "message_id": str | None,
     "error": str (failures only)}

Nothing here raises, so a failed email never undoes the status change
that triggered it.
"""

from bizdocs.config import settings
import logging
import uuid
from typing import Optional, Dict, Any
import httpx

logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"
BREVO_TIMEOUT_SECONDS = 30.0

EmailResult = Dict[str, Any]


def email_failure(error: str, status_code: Optional[int] = None) -> EmailResult:
    return {"success": False, "error": error, "status_code": status_code, "message_id": None}


def email_success(status_code: int, message_id: Optional[str]) -> EmailResult:
    return {"success": True, "status_code": status_code, "message_id": message_id}


def _plain_to_html(body: str) -> str:
    return "<html><body><p>" + body.replace("\n", "<br>") + "</p></body></html>"


class EmailService:
    """Sends through Brevo. Subclasses replace _deliver only."""

    provider = "brevo"

    def __init__(self):
        self.api_key = settings.BREVO_API_KEY
        self.from_address = settings.EMAIL_FROM_ADDRESS
        self.from_name = settings.EMAIL_FROM_NAME

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.from_address)

    def describe(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "configured": self.is_configured,
            "from_address": self.from_address,
            "from_name": self.from_name,
        }

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> EmailResult:
        """Send one message. body is plain text; html_body defaults to it."""
        if not self.is_configured:
            logger.error("Email not sent: Brevo API key not configured")
            return email_failure("Brevo API key not configured")

        message = {
            "sender": {"name": self.from_name, "email": self.from_address},
            "to": [{"email": to}],
            "subject": subject,
            "textContent": body,
            "htmlContent": html_body or _plain_to_html(body),
        }
        if reply_to:
            message["replyTo"] = {"email": reply_to}

        result = await self._deliver(message)
        if result["success"]:
            logger.info(
                f"Email sent to {to} via {self.provider}",
                extra={"subject": subject[:50], "message_id": result["message_id"]},
            )
        return result

    async def _deliver(self, message: Dict[str, Any]) -> EmailResult:
        headers = {
            "accept": "application/json",
            "api-key": self.api_key,
            "content-type": "application/json",
        }
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    BREVO_API_URL, json=message, headers=headers, timeout=BREVO_TIMEOUT_SECONDS,
                )
        except httpx.TimeoutException:
            logger.error("Brevo API request timed out")
            return email_failure("Brevo API request timed out")
        except httpx.HTTPError as e:
            logger.error(f"Brevo request failed: {e}")
            return email_failure(str(e))

        if response.status_code not in (200, 201):
            logger.error(f"Brevo API error {response.status_code}: {response.text}")
            return email_failure(f"Brevo API error: {response.text}", response.status_code)
        return email_success(response.status_code, response.json().get("messageId"))


class MockEmailService(EmailService):
    """Records messages instead of sending them. fail_with simulates a provider error."""

    provider = "mock"

    def __init__(self, fail_with: Optional[str] = None):
        self.api_key = "mock-key"
        self.from_address = "test@example.com"
        self.from_name = "Test Sender"
        self.fail_with = fail_with
        self._sent_emails = []

    async def _deliver(self, message: Dict[str, Any]) -> EmailResult:
        to = message["to"][0]["email"]
        if self.fail_with:
            logger.error(f"Mock email to {to} failed: {self.fail_with}")
            return email_failure(self.fail_with, 500)

        message_id = f"mock-{uuid.uuid4().hex[:16]}"
        self._sent_emails.append({
            "to": to,
            "subject": message["subject"],
            "body": message["textContent"],
            "html_body": message["htmlContent"],
            "reply_to": message.get("replyTo", {}).get("email"),
            "message_id": message_id,
        })
        return email_success(201, message_id)


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Shared instance; the mock when Brevo is not configured."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService() if settings.BREVO_API_KEY else MockEmailService()
    return _email_service


def _document_body(document, customer, company, heading: str, closing: str) -> str:
    currency = company.currency
    lines = [f"Dear {customer.full_name},", "", heading, ""]
    for item in document.items or []:
        name = item.get("name") or item.get("product_name") or ""
        lines.append(f"  {name} x {item['quantity']} @ {item['unit_price']} = {currency} {item['total']}")
    lines += [
        "",
        f"Subtotal: {currency} {document.subtotal}",
        f"Tax ({document.tax_rate}%): {currency} {document.tax_amount}",
        f"Total: {currency} {document.total}",
    ]
    if closing:
        lines += ["", closing]
    return "\n".join(lines)


async def _send_document(
    email_service: EmailService,
    kind: str,
    number: str,
    document,
    customer,
    company,
    closing: str,
) -> EmailResult:
    if not customer.email:
        logger.warning(f"{kind} {number}: customer {customer.id} has no email address")
        return email_failure("Customer has no email address")

    heading = f"Please find {kind.lower()} {number} ({document.title}) from {company.name} below."
    result = await email_service.send_email(
        to=customer.email,
        subject=f"{kind} {number} from {company.name}",
        body=_document_body(document, customer, company, heading, closing),
        reply_to=company.email,
    )
    if not result["success"]:
        logger.warning(f"{kind} {number} marked sent but email failed: {result['error']}")
    return result


async def send_quote_email(email_service: EmailService, quote, customer, company) -> EmailResult:
    closing = f"This quote is valid until {quote.valid_until}." if quote.valid_until else ""
    return await _send_document(email_service, "Quote", quote.quote_number, quote, customer, company, closing)


async def send_invoice_email(email_service: EmailService, invoice, customer, company) -> EmailResult:
    closing = f"Payment is due by {invoice.due_date}." if invoice.due_date else ""
    return await _send_document(
        email_service, "Invoice", invoice.invoice_number, invoice, customer, company, closing,
    )
