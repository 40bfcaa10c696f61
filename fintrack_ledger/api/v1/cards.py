"""Card endpoints: registration, listing, detail, payments, prepaid charge and auto-transfer"""

from typing import List

from fastapi import APIRouter, Depends, Query, status

from fintrack_ledger.api.dependencies import (
    get_auto_transfer_engine,
    get_card_service,
    get_payment_processor,
    get_user_id,
)
from fintrack_ledger.api.v1.schemas import (
    AutoTransferRequest,
    AutoTransferResponse,
    AutoTransferResult,
    CardCreateRequest,
    CardDetailResponse,
    CardResponse,
    CardUpdateRequest,
    ChargeRequest,
    PaymentRequest,
    TransactionResponse,
)
from fintrack_ledger.services.auto_transfer import AutoTransferEngine
from fintrack_ledger.services.card_payments import CardPaymentProcessor
from fintrack_ledger.services.cards import CardService

router = APIRouter()


@router.post("/cards", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
def create_card(
    request: CardCreateRequest,
    user_id: str = Depends(get_user_id),
    service: CardService = Depends(get_card_service),
):
    card = service.create_card(user_id, request.name, request.account_id, request.to_terms())
    return CardResponse.from_domain(card)


@router.get("/cards", response_model=List[CardResponse])
def list_cards(
    include_inactive: bool = Query(False),
    user_id: str = Depends(get_user_id),
    service: CardService = Depends(get_card_service),
):
    return [CardResponse.from_domain(card) for card in service.list_cards(user_id, include_inactive)]


@router.get("/cards/{card_id}", response_model=CardDetailResponse)
def get_card(
    card_id: str,
    user_id: str = Depends(get_user_id),
    service: CardService = Depends(get_card_service),
):
    """Card with this month's usage, its last 10 transactions and last 5 auto-transfers"""
    return CardDetailResponse.from_domain(service.get_card_detail(user_id, card_id))


@router.patch("/cards/{card_id}", response_model=CardResponse)
def update_card(
    card_id: str,
    request: CardUpdateRequest,
    user_id: str = Depends(get_user_id),
    service: CardService = Depends(get_card_service),
):
    card = service.update_card(
        user_id,
        card_id,
        name=request.name,
        is_active=request.is_active,
        term_changes=request.term_changes(),
    )
    return CardResponse.from_domain(card)


@router.post("/cards/{card_id}/payments", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
def create_payment(
    card_id: str,
    request: PaymentRequest,
    user_id: str = Depends(get_user_id),
    processor: CardPaymentProcessor = Depends(get_payment_processor),
):
    """
    Charge a card.

    Returns:
        The EXPENSE transaction recorded on the card's settlement account
    """
    transaction = processor.process_payment(
        user_id,
        card_id,
        request.amount,
        request.currency,
        request.description,
        category_id=request.category_id,
    )
    return TransactionResponse.from_domain(transaction)


@router.post("/cards/{card_id}/charge", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
def charge_prepaid_card(
    card_id: str,
    request: ChargeRequest,
    user_id: str = Depends(get_user_id),
    service: CardService = Depends(get_card_service),
):
    transaction = service.charge_prepaid_card(user_id, card_id, request.amount, request.from_account_id)
    return TransactionResponse.from_domain(transaction)


@router.post("/cards/{card_id}/auto-transfer", response_model=AutoTransferResult)
def execute_auto_transfer(
    card_id: str,
    request: AutoTransferRequest,
    user_id: str = Depends(get_user_id),
    engine: AutoTransferEngine = Depends(get_auto_transfer_engine),
):
    transfer = engine.execute_auto_transfer(
        card_id,
        request.required_amount,
        request.currency,
        user_id=user_id,
    )
    if transfer is None:
        return AutoTransferResult(executed=False)
    return AutoTransferResult(executed=True, auto_transfer=AutoTransferResponse.from_domain(transfer))
