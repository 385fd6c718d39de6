from .catalog import Shop, Product, ProductVariant
from .transactions import Transaction, TransactionItem, PAYMENT_METHODS, TRANSACTION_STATUSES
from .settings import ReceiptStyle, StoredPrinter

__all__ = [
    'Shop', 'Product', 'ProductVariant',
    'Transaction', 'TransactionItem',
    'PAYMENT_METHODS', 'TRANSACTION_STATUSES',
    'ReceiptStyle', 'StoredPrinter',
]
