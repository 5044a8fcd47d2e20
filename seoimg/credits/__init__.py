"""Account credit balances and transaction history."""

from seoimg.credits.ledger import (
    CreditLedger,
    FileCreditLedger,
    PostgresCreditLedger,
    get_credit_ledger,
)

__all__ = ["CreditLedger", "FileCreditLedger", "PostgresCreditLedger", "get_credit_ledger"]
