"""Scheduled transaction endpoints"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status

from fintrack_ledger.api.dependencies import get_scheduled_lifecycle, get_user_id
from fintrack_ledger.api.v1.schemas import (
    ExecuteRequest,
    ExecutionResponse,
    MarkOverdueResponse,
    ScheduledCreateRequest,
    ScheduledListResponse,
    ScheduledResponse,
    ScheduledUpdateRequest,
    to_ledger_time,
)
from fintrack_ledger.domain.models import ScheduledFilter, ScheduledStatus, TransactionType
from fintrack_ledger.services.scheduled import ScheduledTransactionLifecycle

router = APIRouter()


@router.post("/scheduled-transactions", response_model=ScheduledResponse, status_code=status.HTTP_201_CREATED)
def create_scheduled(
    request: ScheduledCreateRequest,
    user_id: str = Depends(get_user_id),
    lifecycle: ScheduledTransactionLifecycle = Depends(get_scheduled_lifecycle),
):
    item = lifecycle.create(user_id, **request.model_dump())
    return ScheduledResponse.from_domain(item)


@router.get("/scheduled-transactions", response_model=ScheduledListResponse)
def list_scheduled(
    status_filter: Optional[ScheduledStatus] = Query(None, alias="status"),
    type: Optional[TransactionType] = Query(None),
    account_id: Optional[str] = Query(None),
    category_id: Optional[str] = Query(None),
    is_recurring: Optional[bool] = Query(None),
    due_from: Optional[datetime] = Query(None),
    due_until: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_user_id),
    lifecycle: ScheduledTransactionLifecycle = Depends(get_scheduled_lifecycle),
):
    """List the caller's items; PENDING items past due are flagged OVERDUE first"""
    criteria = ScheduledFilter(
        status=status_filter,
        type=type,
        account_id=account_id,
        category_id=category_id,
        is_recurring=is_recurring,
        due_from=to_ledger_time(due_from),
        due_until=to_ledger_time(due_until),
        page=page,
        limit=limit,
    )
    return ScheduledListResponse.from_domain(lifecycle.list(user_id, criteria))


@router.get("/scheduled-transactions/reminders", response_model=List[ScheduledResponse])
def due_reminders(
    user_id: str = Depends(get_user_id),
    lifecycle: ScheduledTransactionLifecycle = Depends(get_scheduled_lifecycle),
):
    return [ScheduledResponse.from_domain(item) for item in lifecycle.due_reminders(user_id=user_id)]


@router.post("/scheduled-transactions/mark-overdue", response_model=MarkOverdueResponse)
def mark_overdue(
    user_id: str = Depends(get_user_id),
    lifecycle: ScheduledTransactionLifecycle = Depends(get_scheduled_lifecycle),
):
    return MarkOverdueResponse(marked=lifecycle.mark_overdue(user_id=user_id))


@router.get("/scheduled-transactions/{scheduled_id}", response_model=ScheduledResponse)
def get_scheduled(
    scheduled_id: str,
    user_id: str = Depends(get_user_id),
    lifecycle: ScheduledTransactionLifecycle = Depends(get_scheduled_lifecycle),
):
    return ScheduledResponse.from_domain(lifecycle.get(user_id, scheduled_id))


@router.patch("/scheduled-transactions/{scheduled_id}", response_model=ScheduledResponse)
def update_scheduled(
    scheduled_id: str,
    request: ScheduledUpdateRequest,
    user_id: str = Depends(get_user_id),
    lifecycle: ScheduledTransactionLifecycle = Depends(get_scheduled_lifecycle),
):
    item = lifecycle.update(user_id, scheduled_id, request.model_dump(exclude_unset=True))
    return ScheduledResponse.from_domain(item)


@router.delete("/scheduled-transactions/{scheduled_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_scheduled(
    scheduled_id: str,
    user_id: str = Depends(get_user_id),
    lifecycle: ScheduledTransactionLifecycle = Depends(get_scheduled_lifecycle),
):
    lifecycle.delete(user_id, scheduled_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/scheduled-transactions/{scheduled_id}/execute", response_model=ExecutionResponse)
def execute_scheduled(
    scheduled_id: str,
    request: Optional[ExecuteRequest] = Body(None),
    user_id: str = Depends(get_user_id),
    lifecycle: ScheduledTransactionLifecycle = Depends(get_scheduled_lifecycle),
):
    """
    Turn the item into a real transaction.

    Executing a COMPLETED item returns 409 ALREADY_EXECUTED and records nothing.
    """
    request = request or ExecuteRequest()
    result = lifecycle.execute(
        user_id,
        scheduled_id,
        execute_date=request.execute_date,
        create_recurring=request.create_recurring,
    )
    return ExecutionResponse.from_domain(result)


@router.post("/scheduled-transactions/{scheduled_id}/cancel", response_model=ScheduledResponse)
def cancel_scheduled(
    scheduled_id: str,
    user_id: str = Depends(get_user_id),
    lifecycle: ScheduledTransactionLifecycle = Depends(get_scheduled_lifecycle),
):
    return ScheduledResponse.from_domain(lifecycle.cancel(user_id, scheduled_id))
