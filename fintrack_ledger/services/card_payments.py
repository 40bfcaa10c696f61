"""Card payment processing with per-card-type policies"""

from datetime import datetime
from typing import Optional

from fintrack_ledger.domain.exceptions import (
    CardNotFoundError,
    CreditLimitExceededError,
    DomainException,
    InsufficientBalanceError,
    InsufficientPrepaidBalanceError,
    InvalidAmountError,
    MonthlyLimitExceededError,
)
from fintrack_ledger.domain.ledger import BalanceRef, LedgerSession, LedgerStore
from fintrack_ledger.domain.models import (
    AutoTransferTrigger,
    Card,
    CardType,
    Transaction,
    TransactionType,
)
from fintrack_ledger.domain.money import MoneyAmount, MoneyLike
from fintrack_ledger.infrastructure.observability.logging import log_payment
from fintrack_ledger.infrastructure.observability.metrics import record_auto_transfer, record_payment
from fintrack_ledger.services.auto_transfer import AutoTransferEngine
from fintrack_ledger.services.common import Clock, ledger_now, run_unit
from fintrack_ledger.utils.date_utils import start_of_month


class CardPaymentProcessor:
    """
    Accepts or rejects a card payment according to the card's type.

    Policies:
    - CREDIT: this month's expenses plus the payment must stay within credit_limit
    - DEBIT: card balance must cover the payment, topped up by auto-transfer if enabled
    - PREPAID: card balance must cover the payment
    - POSTPAY: this month's expenses plus the payment must stay within monthly_limit

    Every accepted payment records one EXPENSE transaction on the card's
    settlement account, in the same unit of work as the balance changes.
    """

    def __init__(
        self,
        store: LedgerStore,
        auto_transfers: AutoTransferEngine | None = None,
        clock: Clock | None = None,
    ):
        self.store = store
        self.clock = clock or ledger_now
        self.auto_transfers = auto_transfers or AutoTransferEngine(store, clock=self.clock)
        self._policies = {
            CardType.CREDIT: self._apply_credit,
            CardType.DEBIT: self._apply_debit,
            CardType.PREPAID: self._apply_prepaid,
            CardType.POSTPAY: self._apply_postpay,
        }

    def process_payment(
        self,
        user_id: str,
        card_id: str,
        amount: MoneyLike,
        currency: str,
        description: str,
        category_id: Optional[str] = None,
    ) -> Transaction:
        """
        Charge amount to the user's card.

        Raises:
            CardNotFoundError: Card absent, inactive or owned by someone else
            InvalidAmountError: Amount is zero or negative
            CreditLimitExceededError, MonthlyLimitExceededError,
            InsufficientBalanceError, InsufficientPrepaidBalanceError: Policy rejection
            AutoTransferNotEnabledError, InsufficientLinkedBalanceError: Auto-transfer failure
            LedgerUnavailableError: Commit failed; no mutation is visible
        """
        payment_amount = MoneyAmount(amount)
        if not payment_amount.is_positive():
            raise InvalidAmountError(f"Payment amount must be positive, got {payment_amount}")

        # Fixed once so the limit window cannot shift across a month rollover mid-call
        now = self.clock()
        month_start = start_of_month(now)

        outcome = {"card_type": "UNKNOWN", "auto_transfer": None}

        def unit(session: LedgerSession) -> Transaction:
            card = session.get_card(card_id, user_id)
            if card is None or not card.is_active:
                raise CardNotFoundError()
            outcome["card_type"] = card.type.value

            outcome["auto_transfer"] = self._policies[card.type](
                session, card, payment_amount, currency, month_start, now
            )

            return session.create_transaction(
                Transaction(
                    user_id=user_id,
                    account_id=card.account_id,
                    card_id=card.id,
                    category_id=category_id,
                    type=TransactionType.EXPENSE,
                    amount=payment_amount,
                    currency=currency,
                    date=now,
                    description=description,
                )
            )

        try:
            transaction = run_unit(
                self.store,
                "card_payment",
                unit,
                card_id=card_id,
                amount=payment_amount,
                currency=currency,
            )
        except DomainException as e:
            record_payment(outcome["card_type"], e.kind)
            raise

        record_payment(outcome["card_type"], "accepted")
        if outcome["auto_transfer"] is not None:
            record_auto_transfer("completed")
        log_payment(user_id, card_id, outcome["card_type"], str(payment_amount), transaction.id)
        return transaction

    def _apply_credit(self, session, card: Card, amount: MoneyAmount, currency, month_start: datetime, now: datetime):
        limit = card.terms.credit_limit
        if limit is None:
            return None

        usage = session.aggregate_monthly_expense(card.id, month_start, now)
        if usage.add(amount) > limit:
            raise CreditLimitExceededError(
                f"Credit limit exceeded: monthly usage {usage} + {amount} > limit {limit}"
            )
        return None

    def _apply_debit(self, session, card: Card, amount: MoneyAmount, currency, month_start, now):
        transfer = None
        if card.terms.balance.is_less_than(amount):
            if not card.terms.auto_transfer_enabled:
                raise InsufficientBalanceError(
                    f"Card balance {card.terms.balance} is below payment amount {amount}"
                )
            transfer = self.auto_transfers.transfer_within(
                session, card, amount, currency, AutoTransferTrigger.PAYMENT
            )

        session.increment_balance(BalanceRef.card(card.id), amount.negate())
        return transfer

    def _apply_prepaid(self, session, card: Card, amount: MoneyAmount, currency, month_start, now):
        if card.terms.balance.is_less_than(amount):
            raise InsufficientPrepaidBalanceError(
                f"Prepaid balance {card.terms.balance} is below payment amount {amount}"
            )
        session.increment_balance(BalanceRef.card(card.id), amount.negate())
        return None

    def _apply_postpay(self, session, card: Card, amount: MoneyAmount, currency, month_start: datetime, now: datetime):
        limit = card.terms.monthly_limit
        if limit is None:
            return None

        usage = session.aggregate_monthly_expense(card.id, month_start, now)
        if usage.add(amount) > limit:
            raise MonthlyLimitExceededError(
                f"Monthly limit exceeded: monthly usage {usage} + {amount} > limit {limit}"
            )
        return None
