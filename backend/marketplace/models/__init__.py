from .inventory import InventoryCategory, InventoryItem
from .sessions import SaleSession, SaleListing
from .item_lists import ItemList, ItemListEntry
from .sales import SalesTransaction, SalesTransactionItem
from .settings import SalesSettingsRow
from .audit import AuditEvent

__all__ = [
    'InventoryCategory', 'InventoryItem',
    'SaleSession', 'SaleListing',
    'ItemList', 'ItemListEntry',
    'SalesTransaction', 'SalesTransactionItem',
    'SalesSettingsRow',
    'AuditEvent',
]
