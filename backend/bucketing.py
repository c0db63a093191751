"""Partition a user's todos into time buckets relative to a reference ``now``.

Works on anything exposing ``completed``, ``completed_at``, ``due_date`` and
``created_at`` attributes, so it can be fed ORM rows or plain objects.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from services.validation_service import add_days, end_of_day, start_of_day

DEFAULT_HORIZON_DAYS = 7
DEFAULT_PREVIOUS_LIMIT = 100


@dataclass
class OpenBuckets:
    overdue: List = field(default_factory=list)
    today: List = field(default_factory=list)
    upcoming: List = field(default_factory=list)
    no_due: List = field(default_factory=list)

    def counts(self):
        counts = {
            'overdue': len(self.overdue),
            'today': len(self.today),
            'upcoming': len(self.upcoming),
            'noDue': len(self.no_due),
        }
        counts['total'] = sum(counts.values())
        return counts

    def as_lists(self):
        return {'overdue': self.overdue, 'today': self.today, 'upcoming': self.upcoming, 'noDue': self.no_due}


@dataclass
class CompletedBuckets:
    today: List = field(default_factory=list)
    yesterday: List = field(default_factory=list)
    last7: List = field(default_factory=list)
    last30: List = field(default_factory=list)
    older: List = field(default_factory=list)
    no_timestamp: List = field(default_factory=list)
    fetched: int = 0

    def counts(self):
        return {
            'today': len(self.today),
            'yesterday': len(self.yesterday),
            'last7': len(self.last7),
            'last30': len(self.last30),
            'older': len(self.older),
            'noTimestamp': len(self.no_timestamp),
            'total': self.fetched,
        }

    def as_lists(self):
        return {
            'today': self.today,
            'yesterday': self.yesterday,
            'last7': self.last7,
            'last30': self.last30,
            'older': self.older,
            'noTimestamp': self.no_timestamp,
        }


def _created_key(todo):
    return todo.created_at or datetime.min


def bucket_open_tasks(todos, now, days=DEFAULT_HORIZON_DAYS):
    """
    Split incomplete todos into overdue / today / upcoming / no_due.

    Due dates past the ``days`` horizon are kept in ``upcoming``; there is no
    separate far-future bucket, so ``days`` does not change membership.
    """
    today_start = start_of_day(now)
    today_end = end_of_day(now)

    buckets = OpenBuckets()
    for todo in todos:
        if todo.completed:
            continue
        due = todo.due_date
        if due is None:
            buckets.no_due.append(todo)
        elif due < today_start:
            buckets.overdue.append(todo)
        elif due <= today_end:
            buckets.today.append(todo)
        else:
            buckets.upcoming.append(todo)

    for name in ('overdue', 'today', 'upcoming'):
        getattr(buckets, name).sort(key=lambda t: t.due_date)
    buckets.no_due.sort(key=_created_key, reverse=True)
    return buckets


def _desc_key(value):
    # Missing values sort after present ones in a descending listing
    return (value is not None, value or datetime.min)


def sort_completed(todos):
    return sorted(
        todos,
        key=lambda t: (_desc_key(t.completed_at), _desc_key(t.due_date), _desc_key(t.created_at)),
        reverse=True,
    )


def bucket_completed_tasks(todos, now, include_no_timestamp=True):
    """Split completed todos by when they were completed."""
    today_start = start_of_day(now)
    yesterday_start = start_of_day(add_days(now, -1))
    last7_start = start_of_day(add_days(now, -7))
    last30_start = start_of_day(add_days(now, -30))

    buckets = CompletedBuckets()
    for todo in todos:
        if not todo.completed:
            continue
        buckets.fetched += 1
        completed_at = todo.completed_at
        if completed_at is None:
            if include_no_timestamp:
                buckets.no_timestamp.append(todo)
        elif completed_at >= today_start:
            buckets.today.append(todo)
        elif completed_at >= yesterday_start:
            buckets.yesterday.append(todo)
        elif completed_at >= last7_start:
            buckets.last7.append(todo)
        elif completed_at >= last30_start:
            buckets.last30.append(todo)
        else:
            buckets.older.append(todo)
    return buckets
