"""POST /v1/accounts, GET /v1/accounts/{account_id}"""

from fastapi import APIRouter, Depends, status

from fintrack_ledger.api.dependencies import get_account_service, get_user_id
from fintrack_ledger.api.v1.schemas import AccountCreateRequest, AccountResponse
from fintrack_ledger.services.accounts import AccountService

router = APIRouter()


@router.post("/accounts", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    request: AccountCreateRequest,
    user_id: str = Depends(get_user_id),
    service: AccountService = Depends(get_account_service),
):
    account = service.create_account(user_id, request.name, request.currency, request.balance)
    return AccountResponse.from_domain(account)


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: str,
    user_id: str = Depends(get_user_id),
    service: AccountService = Depends(get_account_service),
):
    return AccountResponse.from_domain(service.get_account(user_id, account_id))
