"""
Module: exchange_kernel.selectors.account_selector
Responsibility: Read-only account balance queries for dashboards and the
    transaction summary.
"""

from sqlalchemy import select

from exchange_kernel.domain.dtos import AccountBalance
from exchange_kernel.exceptions import AccountNotFoundError
from exchange_kernel.models.account import Account
from exchange_kernel.selectors.base import BaseSelector


class AccountSelector(BaseSelector[Account]):
    """Balances of the per-currency accounts, as committed."""

    def list_balances(self) -> tuple[AccountBalance, ...]:
        """All account balances ordered by currency code."""
        accounts = self.session.execute(
            select(Account).order_by(Account.currency)
        ).scalars()
        return tuple(AccountBalance.from_model(account) for account in accounts)

    def get_balance(self, currency: str) -> AccountBalance:
        code = (currency or "").strip().upper()
        account = self.session.execute(
            select(Account).where(Account.currency == code)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(code)
        return AccountBalance.from_model(account)
