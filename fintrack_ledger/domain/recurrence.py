"""Due-date arithmetic for recurring scheduled transactions"""

from datetime import datetime, timedelta
from typing import Optional

from fintrack_ledger.domain.models import Frequency, ScheduledTransaction
from fintrack_ledger.utils.date_utils import add_months, add_years


def advance(due_date: datetime, frequency: Frequency) -> datetime:
    """
    Compute the next due date for a recurring item.

    DAILY and WEEKLY add a fixed 1 or 7 days. MONTHLY and YEARLY are
    calendar-aware: the day of month is kept where it exists and clamped to
    the last day otherwise, so a monthly item due on Jan 31 moves to Feb 29
    (leap year) or Feb 28, never into March.
    """
    frequency = Frequency(frequency)
    if frequency is Frequency.DAILY:
        return due_date + timedelta(days=1)
    if frequency is Frequency.WEEKLY:
        return due_date + timedelta(days=7)
    if frequency is Frequency.MONTHLY:
        return add_months(due_date, 1)
    return add_years(due_date, 1)


def next_occurrence(item: ScheduledTransaction) -> Optional[datetime]:
    """Due date of the successor of item, or None when the series has ended"""
    if not item.is_recurring or item.frequency is None:
        return None

    next_due = advance(item.due_date, item.frequency)
    if item.end_date is not None and next_due > item.end_date:
        return None
    return next_due
