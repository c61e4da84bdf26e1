"""
Test factories for generating realistic request payloads.

Uses factory_boy for declarative test data generation.
"""

from .customer import CustomerFactory
from .user import UserFactory
from .documents import (
    LineItemFactory,
    QuoteFactory,
    InvoiceFactory,
    PurchaseOrderFactory,
    SaleItemFactory,
    SaleFactory,
    ExpenseFactory,
    ProductFactory,
)

__all__ = [
    "CustomerFactory",
    "UserFactory",
    "LineItemFactory",
    "QuoteFactory",
    "InvoiceFactory",
    "PurchaseOrderFactory",
    "SaleItemFactory",
    "SaleFactory",
    "ExpenseFactory",
    "ProductFactory",
]
