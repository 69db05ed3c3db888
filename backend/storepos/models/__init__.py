from .catalog import Product, ProductVariant, InventoryMovement
from .shifts import CashRegister, StaffShift
from .sales import PosTransaction, PosTransactionItem, PosPayment
from .returns import PosReturn, PosReturnItem
from .receipts import PosReceipt
from .parked_orders import ParkedOrder
from .documents import DocumentSequence
from .audit import AuditLog, Notification

__all__ = [
    'Product', 'ProductVariant', 'InventoryMovement',
    'CashRegister', 'StaffShift',
    'PosTransaction', 'PosTransactionItem', 'PosPayment',
    'PosReturn', 'PosReturnItem',
    'PosReceipt',
    'ParkedOrder',
    'DocumentSequence',
    'AuditLog', 'Notification',
]
