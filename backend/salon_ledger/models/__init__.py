from .catalog import Location, Professional, Service, Product, ProfessionalCommissionRule, StaffUser
from .ledger import Sale, SaleItem, Expense, ExpenseSettlementRef, ManualIncome, CashCut
from .finance import MonthlyOverride, AdminCommissionAdjustment
from .audit import ReconciliationEvent

__all__ = [
    'Location', 'Professional', 'Service', 'Product', 'ProfessionalCommissionRule', 'StaffUser',
    'Sale', 'SaleItem', 'Expense', 'ExpenseSettlementRef', 'ManualIncome', 'CashCut',
    'MonthlyOverride', 'AdminCommissionAdjustment',
    'ReconciliationEvent',
]
