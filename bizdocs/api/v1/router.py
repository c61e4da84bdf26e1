from fastapi import APIRouter
from bizdocs.api.v1 import (
    auth,
    companies,
    customers,
    vendors,
    products,
    quotes,
    invoices,
    purchase_orders,
    sales,
    expenses,
)

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(companies.router, prefix="/companies", tags=["companies"])
api_router.include_router(customers.router, prefix="/customers", tags=["customers"])
api_router.include_router(vendors.router, prefix="/vendors", tags=["vendors"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(quotes.router, prefix="/quotes", tags=["quotes"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
api_router.include_router(purchase_orders.router, prefix="/purchase-orders", tags=["purchase-orders"])
api_router.include_router(sales.router, prefix="/sales", tags=["sales"])
api_router.include_router(expenses.router, prefix="/expenses", tags=["expenses"])
