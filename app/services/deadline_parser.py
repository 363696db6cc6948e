"""
Deadline Parser

Turns extracted deadlines ("tomorrow", "Jan 10th", "3/15", ISO dates) into calendar events
"""

import re
from datetime import date, datetime, timedelta
from typing import Dict, List, Any, Optional
import pytz
from app.services.logger import logger

EVENT_COLORS = ['sky', 'amber', 'violet', 'rose', 'emerald', 'orange']
DAY_START_HOUR = 9
DAY_END_HOUR = 17

MONTHS = [
    'january', 'february', 'march', 'april', 'may', 'june',
    'july', 'august', 'september', 'october', 'november', 'december'
]
MONTHS_SHORT = ['jan', 'feb', 'mar', 'apr', 'may', 'jun', 'jul', 'aug', 'sep', 'oct', 'nov', 'dec']

_ORDINAL = r'(?:st|nd|rd|th)?'
_SLASH_RE = re.compile(r'(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?')


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _add_month(value: date) -> date:
    year, month = (value.year + 1, 1) if value.month == 12 else (value.year, value.month + 1)
    # Clamp to the last day of a shorter month
    for day in (value.day, 30, 29, 28):
        candidate = _safe_date(year, month, day)
        if candidate:
            return candidate
    return value


def parse_iso_date(text: str) -> Optional[date]:
    candidate = (text or '').strip()
    if not re.match(r'^\d{4}-\d{2}-\d{2}', candidate):
        return None
    try:
        return datetime.fromisoformat(candidate.replace('Z', '+00:00')).date()
    except ValueError:
        return _safe_date(*(int(part) for part in candidate[:10].split('-')))


def parse_descriptive_date(text: str, today: date) -> Optional[date]:
    """
    Parse common descriptive deadline strings relative to today
    Args:
        text: e.g. "today", "tomorrow", "next week", "January 10", "10th of Jan", "3/15/25"
        today: Reference date
    Returns:
        Parsed date or None when nothing recognisable is found
    """
    lower = (text or '').lower().strip()
    if not lower:
        return None

    if lower == 'today':
        return today
    if lower == 'tomorrow':
        return today + timedelta(days=1)
    if 'next week' in lower:
        return today + timedelta(days=7)
    if 'next month' in lower:
        return _add_month(today)

    for index, (full, short) in enumerate(zip(MONTHS, MONTHS_SHORT)):
        patterns = [
            rf'\b{full}\s+(\d{{1,2}}){_ORDINAL}\b',
            rf'\b{short}\.?\s+(\d{{1,2}}){_ORDINAL}\b',
            rf'\b(\d{{1,2}}){_ORDINAL}\s+(?:of\s+)?{full}\b',
            rf'\b(\d{{1,2}}){_ORDINAL}\s+(?:of\s+)?{short}\b',
        ]
        for pattern in patterns:
            match = re.search(pattern, lower)
            if not match:
                continue
            day = int(match.group(1))
            if 1 <= day <= 31:
                # A month already behind us this year means next year
                year = today.year + 1 if today.month > index + 1 else today.year
                return _safe_date(year, index + 1, day)

    # US style MM/DD[/YY]
    slash = _SLASH_RE.search(lower)
    if slash:
        month, day = int(slash.group(1)), int(slash.group(2))
        year_text = slash.group(3)
        if year_text:
            year = 2000 + int(year_text) if len(year_text) == 2 else int(year_text)
        else:
            year = today.year
        if 1 <= month <= 12 and 1 <= day <= 31:
            return _safe_date(year, month, day)

    return None


def parse_deadline_date(text: str, today: date) -> Optional[date]:
    return parse_iso_date(text) or parse_descriptive_date(text, today)


def deadlines_to_calendar_events(
    deadlines: List[Dict[str, Any]],
    user_id: str,
    analysis_id: str,
    thread_id: str,
    email_title: str,
    timezone: str = 'UTC',
    today: Optional[date] = None
) -> List[Dict[str, Any]]:
    """
    Build calendar_events rows (all-day, 09:00-17:00 local) for every deadline with a parseable date.
    Colours cycle through EVENT_COLORS in event order.
    """
    try:
        tz = pytz.timezone(timezone)
    except pytz.UnknownTimeZoneError:
        logger.warning(f'Unknown timezone {timezone}, falling back to UTC')
        tz = pytz.UTC

    today = today or datetime.now(tz).date()
    events: List[Dict[str, Any]] = []

    for deadline in deadlines:
        raw_date = deadline.get('date') or ''
        event_date = parse_deadline_date(raw_date, today)
        if not event_date:
            logger.info('Skipping deadline with unparseable date', date=raw_date)
            continue

        start = tz.localize(datetime(event_date.year, event_date.month, event_date.day, DAY_START_HOUR))
        end = tz.localize(datetime(event_date.year, event_date.month, event_date.day, DAY_END_HOUR))

        events.append({
            'user_id': user_id,
            'analysis_id': analysis_id,
            'thread_id': thread_id,
            'title': deadline.get('description') or f'Deadline: {email_title}',
            'description': f'From email: "{email_title}"\n\nOriginal deadline: {raw_date}',
            'start_time': start.astimezone(pytz.UTC).isoformat(),
            'end_time': end.astimezone(pytz.UTC).isoformat(),
            'all_day': True,
            'color': EVENT_COLORS[len(events) % len(EVENT_COLORS)],
            'source_type': 'deadline',
            'source_evidence': deadline.get('evidence') or '',
        })

    return events
