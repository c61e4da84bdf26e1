"""
Document number generation.

Two schemes, both scoped per company:

- Counter-based (quotes, invoices, purchase orders): the company row holds
  a prefix and the last number issued. The counter is bumped with a single
  atomic UPDATE ... RETURNING, so concurrent creates never share a number.
  The bump runs in the caller's transaction; if the document insert fails
  the rollback returns the number.

- Scan-based (sales, expenses): PREFIX-YYYYMMDD-NNNN, where NNNN is one
  more than the highest existing number for that day. Two concurrent
  creates can compute the same number; the unique constraint catches it
  and insert_with_scan_number regenerates once before giving up with a
  409.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import DuplicateNumberError, NotFoundError
from bizdocs.models.company import Company
from bizdocs.models.expense import Expense
from bizdocs.models.sale import Sale
from bizdocs.services.record_store import RecordStore

logger = logging.getLogger(__name__)

SCAN_SEQUENCE_WIDTH = 4


class DocumentType(str, Enum):
    QUOTE = "quote"
    INVOICE = "invoice"
    PURCHASE_ORDER = "purchase_order"
    SALE = "sale"
    EXPENSE = "expense"


@dataclass(frozen=True)
class CounterScheme:
    prefix_field: str
    counter_field: str
    width: int


@dataclass(frozen=True)
class ScanScheme:
    model: type
    number_field: str
    prefix: str


COUNTER_SCHEMES = {
    DocumentType.QUOTE: CounterScheme("quote_prefix", "next_quote_number", 4),
    DocumentType.INVOICE: CounterScheme("invoice_prefix", "next_invoice_number", 5),
    DocumentType.PURCHASE_ORDER: CounterScheme("po_prefix", "next_po_number", 4),
}

SCAN_SCHEMES = {
    DocumentType.SALE: ScanScheme(Sale, "sale_number", "SALE"),
    DocumentType.EXPENSE: ScanScheme(Expense, "expense_number", "EXP"),
}


def format_counter_number(prefix: str, value: int, width: int) -> str:
    """INV + 6 + width 5 -> INV-00006"""
    return f"{prefix}-{value:0{width}d}"


def scan_prefix(prefix: str, day: date) -> str:
    return f"{prefix}-{day.strftime('%Y%m%d')}"


def format_scan_number(prefix: str, day: date, sequence: int) -> str:
    return f"{scan_prefix(prefix, day)}-{sequence:0{SCAN_SEQUENCE_WIDTH}d}"


def parse_sequence(number: Optional[str]) -> int:
    """Trailing numeric part of a document number, 0 if there is none."""
    if not number:
        return 0
    tail = number.rsplit("-", 1)[-1]
    return int(tail) if tail.isdigit() else 0


async def _require_company(db: AsyncSession, company_id: int) -> None:
    await RecordStore(db, Company, company_id).get(company_id)


async def next_counter_number(db: AsyncSession, company_id: int, document_type: DocumentType) -> str:
    """Bump the company counter for document_type and format the new value."""
    scheme = COUNTER_SCHEMES[document_type]
    store = RecordStore(db, Company, company_id)

    value = await store.atomic_increment(company_id, scheme.counter_field)
    result = await db.execute(select(getattr(Company, scheme.prefix_field)).where(Company.id == company_id))
    prefix = result.scalar_one()

    number = format_counter_number(prefix, value, scheme.width)
    logger.info(f"Assigned {document_type.value} number {number} for company {company_id}")
    return number


async def next_scan_number(
    db: AsyncSession,
    company_id: int,
    document_type: DocumentType,
    today: Optional[date] = None,
) -> str:
    """Highest number issued today for document_type, plus one."""
    scheme = SCAN_SCHEMES[document_type]
    await _require_company(db, company_id)

    day = today or date.today()
    day_prefix = scan_prefix(scheme.prefix, day)
    column = getattr(scheme.model, scheme.number_field)

    store = RecordStore(db, scheme.model, company_id)
    # Longer sequences sort first so -10000 ranks above -9999
    latest = await store.find_many(
        column.like(f"{day_prefix}-%"),
        order_by=[func.length(column).desc(), column.desc()],
        limit=1,
    )
    sequence = parse_sequence(getattr(latest[0], scheme.number_field)) + 1 if latest else 1
    return format_scan_number(scheme.prefix, day, sequence)


async def next_number(
    db: AsyncSession,
    company_id: int,
    document_type: DocumentType,
    today: Optional[date] = None,
) -> str:
    """Next document number for the company, whichever scheme the type uses."""
    document_type = DocumentType(document_type)
    if document_type in COUNTER_SCHEMES:
        return await next_counter_number(db, company_id, document_type)
    if document_type in SCAN_SCHEMES:
        return await next_scan_number(db, company_id, document_type, today=today)
    raise NotFoundError("Numbering scheme", document_type.value)


async def insert_with_scan_number(
    db: AsyncSession,
    company_id: int,
    document_type: DocumentType,
    record,
    today: Optional[date] = None,
    retries: int = 1,
):
    """Number and insert a sale or expense, regenerating on a collision.

    Each attempt runs in a savepoint so a unique violation only discards
    that insert. Raises DuplicateNumberError once the retries are used up.
    """
    scheme = SCAN_SCHEMES[document_type]
    record.company_id = company_id
    number = None

    for attempt in range(retries + 1):
        number = await next_scan_number(db, company_id, document_type, today=today)
        setattr(record, scheme.number_field, number)
        try:
            async with db.begin_nested():
                db.add(record)
                await db.flush()
        except IntegrityError:
            logger.warning(
                f"Duplicate {document_type.value} number {number} for company {company_id} "
                f"(attempt {attempt + 1} of {retries + 1})"
            )
            continue
        logger.info(f"Assigned {document_type.value} number {number} for company {company_id}")
        return record

    raise DuplicateNumberError(number)
