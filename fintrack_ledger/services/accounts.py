"""Account registration and lookup"""

from fintrack_ledger.domain.exceptions import AccountNotFoundError, InvalidAmountError
from fintrack_ledger.domain.ledger import LedgerStore
from fintrack_ledger.domain.models import Account
from fintrack_ledger.domain.money import MoneyAmount, MoneyLike
from fintrack_ledger.services.common import run_unit


class AccountService:
    def __init__(self, store: LedgerStore):
        self.store = store

    def create_account(self, user_id: str, name: str, currency: str, balance: MoneyLike = 0) -> Account:
        opening_balance = MoneyAmount(balance)
        if opening_balance.is_less_than(0):
            raise InvalidAmountError("Opening balance cannot be negative")

        account = Account(user_id=user_id, name=name, currency=currency.upper(), balance=opening_balance)
        return run_unit(self.store, "create_account", lambda session: session.create_account(account))

    def get_account(self, user_id: str, account_id: str) -> Account:
        account = run_unit(
            self.store,
            "get_account",
            lambda session: session.get_account(account_id, user_id),
            account_id=account_id,
        )
        if account is None:
            raise AccountNotFoundError()
        return account
