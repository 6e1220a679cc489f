# SPDX-License-Identifier: Apache-2.0

"""
Event recency rules.

An allowance can be claimed only for a life event that happened within the
last calendar year: not in the future, and strictly after the same day one
year earlier. Loans are not tied to an event.
"""

from datetime import date, datetime
from typing import Optional, Union

from models.enums import BenefitType


CLAIM_WINDOW_YEARS = 1

DateLike = Union[date, datetime, str]


def subtract_years(value: date, years: int) -> date:
    """
    Subtract calendar years from a date.

    29 February in a non-leap target year rolls over to 1 March.
    """
    try:
        return value.replace(year=value.year - years)
    except ValueError:
        return date(value.year - years, 3, 1)


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def claim_window_start(now: DateLike) -> date:
    """Most recent event date that is no longer claimable."""
    return subtract_years(_as_date(now), CLAIM_WINDOW_YEARS)


def is_event_claimable(benefit_type, event_date: Optional[DateLike], now: DateLike) -> bool:
    """
    Check whether a life event can still be claimed.

    Args:
        benefit_type: Requested benefit type
        event_date: Date of the claimed event, None when not provided
        now: Reference time (submission time)

    Returns:
        True for loans; for allowances, True iff the event is neither in the
        future nor one calendar year old or older
    """
    if BenefitType(benefit_type).is_loan:
        return True

    if event_date is None or event_date == "":
        return False

    event = _as_date(event_date)
    today = _as_date(now)

    if event > today:
        return False

    return event > claim_window_start(today)
