from bizdocs.models.company import Company
from bizdocs.models.user import User
from bizdocs.models.customer import Customer
from bizdocs.models.vendor import Vendor
from bizdocs.models.product import Product
from bizdocs.models.quote import Quote
from bizdocs.models.invoice import Invoice
from bizdocs.models.purchase_order import PurchaseOrder
from bizdocs.models.sale import Sale
from bizdocs.models.expense import Expense

__all__ = [
    "Company",
    "User",
    "Customer",
    "Vendor",
    "Product",
    "Quote",
    "Invoice",
    "PurchaseOrder",
    "Sale",
    "Expense",
]
