"""Models package."""

from .account import Account
from .generation import Generation
from .credit_ledger import CreditLedger
