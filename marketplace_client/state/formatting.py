from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from itertools import groupby
from typing import Iterable, Iterator, List, Optional

from marketplace_client.core.locales import month_name, translate
from marketplace_client.models.schemas import Message


def _local(timestamp: datetime, tz: Optional[tzinfo]) -> datetime:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    # astimezone(None) converts to the system local zone
    return timestamp.astimezone(tz)


def _now(now: Optional[datetime], tz: Optional[tzinfo]) -> datetime:
    return _local(now or datetime.now(timezone.utc), tz)


def local_day(timestamp: datetime, tz: Optional[tzinfo] = None) -> date:
    return _local(timestamp, tz).date()


def format_date_label(day: date, now: Optional[datetime] = None, language: str = "en",
                      tz: Optional[tzinfo] = None) -> str:
    """'Today', 'Yesterday' or a long localized date."""
    today = _now(now, tz).date()
    if day == today:
        return translate("today", language)
    if day == today - timedelta(days=1):
        return translate("yesterday", language)
    return f"{day.day} {month_name(day.month, language)} {day.year}"


def format_relative_time(timestamp: datetime, now: Optional[datetime] = None, language: str = "en",
                         tz: Optional[tzinfo] = None) -> str:
    """
    Chat bubble time: "now" under a minute, "N minutes ago" under an hour,
    otherwise the local clock time as HH:MM.
    """
    current = _now(now, tz)
    local = _local(timestamp, tz)
    minutes = int((current - local).total_seconds() // 60)
    if minutes < 1:
        return translate("now", language)
    if minutes < 60:
        return translate("minutes_ago", language, count=minutes)
    return local.strftime("%H:%M")


def format_list_time(timestamp: Optional[datetime], now: Optional[datetime] = None, language: str = "en",
                     tz: Optional[tzinfo] = None) -> str:
    """Conversation list time: minutes, then hours, then days, then the date."""
    if timestamp is None:
        return ""
    current = _now(now, tz)
    local = _local(timestamp, tz)
    minutes = int((current - local).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24
    if minutes < 1:
        return translate("now", language)
    if minutes < 60:
        return translate("minutes_ago", language, count=minutes)
    if hours < 24:
        return translate("hours_ago", language, count=hours)
    if days < 7:
        return translate("days_ago", language, count=days)
    return local.strftime("%d/%m/%Y")


@dataclass
class DateGroup:
    key: str # local calendar day, ISO format
    label: str
    messages: List[Message] = field(default_factory=list)


def group_by_date(messages: Iterable[Message], now: Optional[datetime] = None, language: str = "en",
                  tz: Optional[tzinfo] = None) -> Iterator[DateGroup]:
    """
    Lazily split an ascending message sequence into per-day groups.

    Consecutive messages on the same local day share a group, so an
    ascending input yields one group per distinct day. Call again to
    restart; the input is never modified.
    """
    for day, day_messages in groupby(messages, key=lambda msg: local_day(msg.created_at, tz)):
        yield DateGroup(
            key=day.isoformat(),
            label=format_date_label(day, now=now, language=language, tz=tz),
            messages=list(day_messages),
        )
