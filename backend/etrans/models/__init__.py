from .enums import (
    Role, ShipmentStatus, IN_PROGRESS_STATUSES, CustomsRegime, Circuit,
    ContainerType, DocumentType, ExpenseType, ExpenseCategory, DUTY_CATEGORIES,
)
from .tenancy import Company, Client
from .auth import User, RefreshToken
from .shipments import Shipment, Container, Document, TimelineEvent
from .finance import Expense

__all__ = [
    'Role', 'ShipmentStatus', 'IN_PROGRESS_STATUSES', 'CustomsRegime', 'Circuit',
    'ContainerType', 'DocumentType', 'ExpenseType', 'ExpenseCategory', 'DUTY_CATEGORIES',
    'Company', 'Client',
    'User', 'RefreshToken',
    'Shipment', 'Container', 'Document', 'TimelineEvent',
    'Expense',
]
