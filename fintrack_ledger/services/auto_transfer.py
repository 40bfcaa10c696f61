"""Debit card auto-transfer: top up a card's funds from its linked account"""

import logging
from typing import Optional

from fintrack_ledger.domain.exceptions import (
    AccountNotFoundError,
    AutoTransferNotEnabledError,
    CardNotFoundError,
    DomainException,
    InsufficientLinkedBalanceError,
)
from fintrack_ledger.domain.ledger import BalanceRef, LedgerSession, LedgerStore
from fintrack_ledger.domain.models import (
    AutoTransfer,
    AutoTransferStatus,
    AutoTransferTrigger,
    Card,
    DebitTerms,
    Transaction,
    TransactionType,
)
from fintrack_ledger.domain.money import MoneyAmount, MoneyLike
from fintrack_ledger.infrastructure.observability.metrics import record_auto_transfer
from fintrack_ledger.services.common import Clock, ledger_now, run_unit

logger = logging.getLogger(__name__)


class AutoTransferEngine:
    """Moves funds from a debit card's linked account into its settlement account"""

    def __init__(self, store: LedgerStore, clock: Clock | None = None):
        self.store = store
        self.clock = clock or ledger_now

    def execute_auto_transfer(
        self,
        card_id: str,
        required_amount: MoneyLike,
        currency: str,
        triggered_by: AutoTransferTrigger = AutoTransferTrigger.LOW_BALANCE,
        user_id: Optional[str] = None,
    ) -> Optional[AutoTransfer]:
        """
        Top up a debit card so it can cover required_amount and keep its minimum balance.

        Runs as its own unit of work. Returns None when the card already has
        enough funds. When user_id is given the card must belong to that user.

        Raises:
            CardNotFoundError: Card does not exist (or is not the user's)
            AutoTransferNotEnabledError: Not a debit card, or auto-transfer is off or unlinked
            InsufficientLinkedBalanceError: Linked account cannot fund the transfer
        """
        required = MoneyAmount(required_amount)

        def unit(session: LedgerSession) -> Optional[AutoTransfer]:
            card = session.get_card(card_id, user_id)
            if card is None:
                raise CardNotFoundError()
            return self.transfer_within(session, card, required, currency, triggered_by)

        try:
            transfer = run_unit(
                self.store,
                "auto_transfer",
                unit,
                card_id=card_id,
                amount=required,
            )
        except DomainException as e:
            record_auto_transfer(e.kind)
            raise

        record_auto_transfer("completed" if transfer else "skipped")
        return transfer

    def transfer_within(
        self,
        session: LedgerSession,
        card: Card,
        required_amount: MoneyAmount,
        currency: str,
        triggered_by: AutoTransferTrigger,
    ) -> Optional[AutoTransfer]:
        """
        Perform the transfer inside the caller's unit of work.

        transfer = required - card balance + min balance. The card object's
        balance is updated in place so the caller sees the topped-up value.
        """
        terms = card.terms
        if not isinstance(terms, DebitTerms):
            raise AutoTransferNotEnabledError("Auto transfer is only available for debit cards")
        if not terms.auto_transfer_enabled or not terms.linked_account_id:
            raise AutoTransferNotEnabledError()

        transfer_amount = required_amount.subtract(terms.balance).add(terms.min_balance)
        if not transfer_amount.is_positive():
            return None

        linked_account = session.get_account(terms.linked_account_id, card.user_id)
        if linked_account is None:
            raise AccountNotFoundError("Linked account not found")
        if linked_account.balance.is_less_than(transfer_amount):
            raise InsufficientLinkedBalanceError(
                f"Linked account balance {linked_account.balance} is below transfer amount {transfer_amount}"
            )

        now = self.clock()

        session.increment_balance(BalanceRef.account(linked_account.id), transfer_amount.negate())
        session.increment_balance(BalanceRef.account(card.account_id), transfer_amount)
        terms.balance = session.increment_balance(BalanceRef.card(card.id), transfer_amount)

        transfer = session.create_auto_transfer(
            AutoTransfer(
                user_id=card.user_id,
                card_id=card.id,
                from_account_id=linked_account.id,
                to_account_id=card.account_id,
                amount=transfer_amount,
                currency=currency,
                triggered_by=triggered_by,
                status=AutoTransferStatus.COMPLETED,
                reason=f"Debit card auto transfer: {card.name}",
                created_at=now,
                executed_at=now,
            )
        )

        # One leg per account so each account's history shows the movement
        notes = f"Auto Transfer ID: {transfer.id}"
        session.create_transaction(
            Transaction(
                user_id=card.user_id,
                account_id=linked_account.id,
                type=TransactionType.TRANSFER,
                amount=transfer_amount,
                currency=currency,
                date=now,
                description=f"Auto transfer (out): {linked_account.name} -> {card.name}",
                notes=notes,
            )
        )
        session.create_transaction(
            Transaction(
                user_id=card.user_id,
                account_id=card.account_id,
                type=TransactionType.TRANSFER,
                amount=transfer_amount,
                currency=currency,
                date=now,
                description=f"Auto transfer (in): {linked_account.name} -> {card.name}",
                notes=notes,
            )
        )

        logger.info(
            "Auto transfer staged",
            extra={
                "card_id": card.id,
                "auto_transfer_id": transfer.id,
                "amount": str(transfer_amount),
                "triggered_by": triggered_by.value,
            },
        )
        return transfer
