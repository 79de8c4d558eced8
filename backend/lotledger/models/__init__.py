from .tenancy import Tenant
from .auth import User, SessionToken, ROLE_ADMIN, ROLE_STAFF, ROLES
from .lots import Lot, LotColor, LotSize
from .transactions import SaleTransaction, SaleTransactionItem

__all__ = [
    'Tenant',
    'User', 'SessionToken', 'ROLE_ADMIN', 'ROLE_STAFF', 'ROLES',
    'Lot', 'LotColor', 'LotSize',
    'SaleTransaction', 'SaleTransactionItem',
]
