"""
Vendor service.

Vendors are hard-deleted, but only once no purchase order or expense
points at them.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import ConflictError
from bizdocs.models.expense import Expense
from bizdocs.models.purchase_order import PurchaseOrder
from bizdocs.models.vendor import Vendor
from bizdocs.services.record_store import RecordStore

logger = logging.getLogger(__name__)


def vendors(db: AsyncSession, company_id: int) -> RecordStore[Vendor]:
    return RecordStore(db, Vendor, company_id)


async def delete_vendor(db: AsyncSession, company_id: int, vendor_id: int) -> None:
    store = vendors(db, company_id)
    vendor = await store.get(vendor_id)

    orders = await RecordStore(db, PurchaseOrder, company_id).count(vendor_id=vendor.id)
    expenses = await RecordStore(db, Expense, company_id).count(vendor_id=vendor.id)
    if orders or expenses:
        raise ConflictError(
            f"Vendor {vendor.name} has {orders} purchase order(s) and {expenses} expense(s); "
            "set its status to inactive instead"
        )

    await store.delete(vendor.id)
    logger.info(f"Deleted vendor {vendor.name}")
