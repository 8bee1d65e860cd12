from .auth import Profile, USER_ROLES
from .catalog import Product, Customer, Vendor, PRODUCT_STATUSES
from .inventory import StockMovement, MOVEMENT_TYPES
from .documents import (
    Invoice,
    InvoiceItem,
    SalesOrder,
    SalesOrderItem,
    PurchaseOrder,
    PurchaseOrderItem,
    Payment,
    DocumentSequence,
    INVOICE_STATUSES,
    ORDER_STATUSES,
    PURCHASE_ORDER_STATUSES,
    PAYMENT_STATUSES,
)

__all__ = [
    'Profile', 'USER_ROLES',
    'Product', 'Customer', 'Vendor', 'PRODUCT_STATUSES',
    'StockMovement', 'MOVEMENT_TYPES',
    'Invoice', 'InvoiceItem', 'SalesOrder', 'SalesOrderItem',
    'PurchaseOrder', 'PurchaseOrderItem', 'Payment', 'DocumentSequence',
    'INVOICE_STATUSES', 'ORDER_STATUSES', 'PURCHASE_ORDER_STATUSES', 'PAYMENT_STATUSES',
]
