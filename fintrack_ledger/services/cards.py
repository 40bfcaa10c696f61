"""Card registration, maintenance, prepaid top-up and detail views"""

import logging
from dataclasses import fields, replace
from typing import Any, Dict, List, Optional

from fintrack_ledger.domain.exceptions import (
    AccountNotFoundError,
    CardNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidCardConfigurationError,
)
from fintrack_ledger.domain.ledger import BalanceRef, LedgerSession, LedgerStore
from fintrack_ledger.domain.models import (
    Card,
    CardDetail,
    CardTerms,
    CreditTerms,
    DebitTerms,
    PostpayTerms,
    PrepaidTerms,
    Transaction,
    TransactionType,
)
from fintrack_ledger.domain.money import MoneyAmount, MoneyLike
from fintrack_ledger.services.common import Clock, ledger_now, run_unit
from fintrack_ledger.utils.date_utils import start_of_month

logger = logging.getLogger(__name__)

MONEY_TERM_FIELDS = frozenset({"credit_limit", "min_balance", "monthly_limit"})


def _check_day(value: Optional[int], field_name: str) -> None:
    if value is not None and not 1 <= value <= 31:
        raise InvalidCardConfigurationError(f"{field_name} must be a day of month (1-31)")


def _check_not_negative(value: Optional[MoneyAmount], field_name: str) -> None:
    if value is not None and value.is_less_than(0):
        raise InvalidCardConfigurationError(f"{field_name} cannot be negative")


def validate_terms(terms: CardTerms) -> None:
    """Reject values that no card policy can work with"""
    if isinstance(terms, CreditTerms):
        _check_not_negative(terms.credit_limit, "credit_limit")
        _check_day(terms.billing_date, "billing_date")
        _check_day(terms.payment_date, "payment_date")
    elif isinstance(terms, DebitTerms):
        if terms.min_balance is None:
            raise InvalidCardConfigurationError("Debit cards need a min_balance (0 for none)")
        _check_not_negative(terms.balance, "balance")
        _check_not_negative(terms.min_balance, "min_balance")
        if terms.auto_transfer_enabled and not terms.linked_account_id:
            raise InvalidCardConfigurationError("Auto transfer requires a linked account")
    elif isinstance(terms, PrepaidTerms):
        _check_not_negative(terms.balance, "balance")
    elif isinstance(terms, PostpayTerms):
        _check_not_negative(terms.monthly_limit, "monthly_limit")
        _check_day(terms.settlement_day, "settlement_day")


class CardService:
    """Everything about cards except payments (see CardPaymentProcessor)"""

    def __init__(self, store: LedgerStore, clock: Clock | None = None):
        self.store = store
        self.clock = clock or ledger_now

    def _check_linked_account(self, session: LedgerSession, user_id: str, settlement_id: str, terms: CardTerms) -> None:
        if not isinstance(terms, DebitTerms) or not terms.linked_account_id:
            return
        if terms.linked_account_id == settlement_id:
            raise InvalidCardConfigurationError("Linked account must differ from the settlement account")
        if session.get_account(terms.linked_account_id, user_id) is None:
            raise AccountNotFoundError("Linked account not found")

    def create_card(self, user_id: str, name: str, account_id: str, terms: CardTerms) -> Card:
        validate_terms(terms)

        def unit(session: LedgerSession) -> Card:
            if session.get_account(account_id, user_id) is None:
                raise AccountNotFoundError()
            self._check_linked_account(session, user_id, account_id, terms)
            return session.create_card(Card(user_id=user_id, account_id=account_id, name=name, terms=terms))

        card = run_unit(self.store, "create_card", unit, account_id=account_id)
        logger.info("Card created", extra={"card_id": card.id, "card_type": card.type.value})
        return card

    def update_card(
        self,
        user_id: str,
        card_id: str,
        name: Optional[str] = None,
        is_active: Optional[bool] = None,
        term_changes: Optional[Dict[str, Any]] = None,
    ) -> Card:
        """
        Change a card's name, activity or type-specific terms.

        term_changes may only name attributes of the card's own type. The
        stored balance is not editable here; only ledger operations move it.
        """

        def unit(session: LedgerSession) -> Card:
            card = session.get_card(card_id, user_id)
            if card is None:
                raise CardNotFoundError()

            if term_changes:
                editable = {f.name for f in fields(card.terms)} - {"balance"}
                foreign = set(term_changes) - editable
                if foreign:
                    raise InvalidCardConfigurationError(
                        f"{card.type.value} cards have no editable {', '.join(sorted(foreign))}"
                    )
                coerced = {
                    key: MoneyAmount(value) if key in MONEY_TERM_FIELDS and value is not None else value
                    for key, value in term_changes.items()
                }
                new_terms = replace(card.terms, **coerced)
                validate_terms(new_terms)
                self._check_linked_account(session, user_id, card.account_id, new_terms)
                card.terms = new_terms

            if name is not None:
                card.name = name
            if is_active is not None:
                card.is_active = is_active
            return session.save_card(card)

        return run_unit(self.store, "update_card", unit, card_id=card_id)

    def list_cards(self, user_id: str, include_inactive: bool = False) -> List[Card]:
        return run_unit(
            self.store,
            "list_cards",
            lambda session: session.list_cards(user_id, include_inactive),
        )

    def get_card_detail(self, user_id: str, card_id: str) -> CardDetail:
        """Card with this month's expense total and its latest activity"""
        now = self.clock()
        month_start = start_of_month(now)

        def unit(session: LedgerSession) -> CardDetail:
            card = session.get_card(card_id, user_id)
            if card is None:
                raise CardNotFoundError("Card not found")
            return CardDetail(
                card=card,
                monthly_usage=session.aggregate_monthly_expense(card.id, month_start, now),
                recent_transactions=session.list_transactions(user_id, card_id=card.id, limit=10),
                recent_auto_transfers=session.list_auto_transfers(card.id, limit=5),
            )

        return run_unit(self.store, "card_detail", unit, card_id=card_id)

    def charge_prepaid_card(self, user_id: str, card_id: str, amount: MoneyLike, from_account_id: str) -> Transaction:
        """
        Top up a prepaid card from one of the user's accounts.

        Raises:
            CardNotFoundError: No such prepaid card for this user
            AccountNotFoundError: Source account not found
            InsufficientBalanceError: Source account cannot cover the amount
        """
        charge_amount = MoneyAmount(amount)
        if not charge_amount.is_positive():
            raise InvalidAmountError(f"Charge amount must be positive, got {charge_amount}")
        now = self.clock()

        def unit(session: LedgerSession) -> Transaction:
            card = session.get_card(card_id, user_id)
            if card is None or not isinstance(card.terms, PrepaidTerms):
                raise CardNotFoundError("Prepaid card not found")

            source = session.get_account(from_account_id, user_id)
            if source is None:
                raise AccountNotFoundError("Source account not found")
            if source.balance.is_less_than(charge_amount):
                raise InsufficientBalanceError("Insufficient balance in source account")

            session.increment_balance(BalanceRef.account(source.id), charge_amount.negate())
            session.increment_balance(BalanceRef.card(card.id), charge_amount)
            return session.create_transaction(
                Transaction(
                    user_id=user_id,
                    account_id=source.id,
                    card_id=card.id,
                    type=TransactionType.TRANSFER,
                    amount=charge_amount,
                    currency=source.currency,
                    date=now,
                    description=f"Prepaid card charge: {card.name}",
                )
            )

        return run_unit(
            self.store,
            "prepaid_charge",
            unit,
            card_id=card_id,
            amount=charge_amount,
            from_account_id=from_account_id,
        )
