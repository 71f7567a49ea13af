from .catalog import Category, Supplier, Unit, Product
from .inventory import StockLedgerEntry
from .sales import Customer, Invoice, InvoiceItem
from .purchasing import Purchase, PurchaseItem
from .discounts import ItemDiscount, CategoryDiscount, BillDiscount

__all__ = [
    'Category', 'Supplier', 'Unit', 'Product',
    'StockLedgerEntry',
    'Customer', 'Invoice', 'InvoiceItem',
    'Purchase', 'PurchaseItem',
    'ItemDiscount', 'CategoryDiscount', 'BillDiscount',
]
