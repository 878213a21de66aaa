from .records import StoredRecord
from .outbox import ReplicaOutboxEntry, OUTBOX_PENDING, OUTBOX_SENT
from .catalog import Product, ProductUnit, Supplier, DEFAULT_MIN_STOCK_ALERT
from .customers import (
    Customer, PointReward, PointHistory,
    TIER_BRONZE, TIER_SILVER, TIER_GOLD, VALID_TIERS, POINTS_EARN, POINTS_REDEEM,
)
from .sales import (
    CartItem, Transaction, Procurement, ProcurementItem, DebtPayment,
    CashPayment, QrisPayment, DebtCredit, SplitPayment, PaymentOutcome,
    PAYMENT_CASH, PAYMENT_QRIS, PAYMENT_DEBT, PAYMENT_SPLIT, VALID_PAYMENT_METHODS,
)
from .settings import AppSettings, SETTINGS_RECORD_ID

__all__ = [
    'StoredRecord', 'ReplicaOutboxEntry', 'OUTBOX_PENDING', 'OUTBOX_SENT',
    'Product', 'ProductUnit', 'Supplier', 'DEFAULT_MIN_STOCK_ALERT',
    'Customer', 'PointReward', 'PointHistory',
    'TIER_BRONZE', 'TIER_SILVER', 'TIER_GOLD', 'VALID_TIERS', 'POINTS_EARN', 'POINTS_REDEEM',
    'CartItem', 'Transaction', 'Procurement', 'ProcurementItem', 'DebtPayment',
    'CashPayment', 'QrisPayment', 'DebtCredit', 'SplitPayment', 'PaymentOutcome',
    'PAYMENT_CASH', 'PAYMENT_QRIS', 'PAYMENT_DEBT', 'PAYMENT_SPLIT', 'VALID_PAYMENT_METHODS',
    'AppSettings', 'SETTINGS_RECORD_ID',
]
