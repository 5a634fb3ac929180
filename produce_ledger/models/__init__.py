from produce_ledger.models.master import Item, Seller, Supplier
from produce_ledger.models.inventory import CurrentInventory, DailyInventorySnapshot, InventoryMovement, ItemType
from produce_ledger.models.balances import BalanceJournal, OpeningBalance, OutstandingBalance
from produce_ledger.models.procurement import ProcurementEntry, ProcurementSession
from produce_ledger.models.sales import SalesEntry, SalesLineItem, SalesSession
from produce_ledger.models.damage import DamageEntry
from produce_ledger.models.payment import Payment
from produce_ledger.models.audit_log import AuditLog
