"""
Day timeline geometry for tasks that have both a start and a due time.

Hour slots start at ``hour_height`` pixels and grow so that short tasks stay
legible and stacked tasks fit. Tasks that overlap in time are spread over
side-by-side columns. All results are plain numbers (pixels for top/height,
percent for left/width) so a client can render them directly.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional

from services.validation_service import parse_date, start_of_day

logger = logging.getLogger(__name__)

HOURS = range(24)
BASE_HOUR_HEIGHT = 60
MIN_TASK_PIXELS = 36
MAX_HOUR_EXPANSION = 4  # multiple of the base hour height
LONG_TASK_DAYS = 7
PUSH_TOLERANCE_PX = 1

ONE_HOUR = timedelta(hours=1)
ONE_DAY = timedelta(days=1)

STATUS_COMPLETED = 'completed'
STATUS_OVERDUE = 'overdue'
STATUS_IN_PROGRESS = 'in-progress'
STATUS_UPCOMING = 'upcoming'


def _field(task, attr, key):
    if isinstance(task, dict):
        return task.get(key, task.get(attr))
    return getattr(task, attr, None)


def task_start(task):
    return parse_date(_field(task, 'start_date', 'startDate'))


def task_end(task):
    return parse_date(_field(task, 'due_date', 'dueDate'))


def task_id(task):
    return _field(task, 'id', 'id')


def task_status(task, now):
    if _field(task, 'completed', 'completed'):
        return STATUS_COMPLETED
    start, end = task_start(task), task_end(task)
    if start is None or end is None:
        return STATUS_UPCOMING
    if now > end:
        return STATUS_OVERDUE
    if start <= now <= end:
        return STATUS_IN_PROGRESS
    return STATUS_UPCOMING


class StatusTracker:
    """Remembers the last derived status per task so periodic ticks only report real changes."""

    def __init__(self, tasks=(), now=None):
        self.statuses = self._snapshot(tasks, now) if now is not None else {}

    @staticmethod
    def _snapshot(tasks, now):
        return {task_id(task): task_status(task, now) for task in tasks}

    def tick(self, tasks, now):
        """Recompute statuses at ``now``; True when any task changed (or tasks came or went)."""
        statuses = self._snapshot(tasks, now)
        if statuses == self.statuses:
            return False
        self.statuses = statuses
        return True


@dataclass
class _Interval:
    task: object
    start: object
    end: object


@dataclass
class TaskPosition:
    task: object
    top: float
    height: float
    left: float = 0.0
    width: float = 100.0
    start: object = None
    end: object = None

    @property
    def bottom(self):
        return self.top + self.height

    def to_dict(self):
        return {
            'id': task_id(self.task),
            'top': round(self.top, 3),
            'height': round(self.height, 3),
            'left': round(self.left, 3),
            'width': round(self.width, 3),
        }


@dataclass
class DayLayout:
    slot_heights: Dict[int, float]
    positions: List[TaskPosition] = field(default_factory=list)
    pushed: bool = False

    def to_dict(self, now=None):
        positions = []
        for pos in self.positions:
            data = pos.to_dict()
            if now is not None:
                data['status'] = task_status(pos.task, now)
            positions.append(data)
        return {
            'slotHeights': [round(self.slot_heights[h], 3) for h in HOURS],
            'positions': positions,
        }


def _overlaps(a_start, a_end, b_start, b_end):
    return not (a_start >= b_end or a_end <= b_start)


def _overlap_minutes(interval, window_start, window_end):
    span = min(interval.end, window_end) - max(interval.start, window_start)
    return max(0.0, span.total_seconds() / 60.0)


def _valid_intervals(tasks):
    intervals = []
    for task in tasks or []:
        start, end = task_start(task), task_end(task)
        if start is None or end is None or end <= start:
            continue
        if end - start > timedelta(days=LONG_TASK_DAYS):
            logger.warning("Task %s spans more than %s days and may display incorrectly", task_id(task), LONG_TASK_DAYS)
        intervals.append(_Interval(task, start, end))
    return intervals


def assign_columns(items, start_of, end_of):
    """Greedy first-fit: each item joins the first column holding nothing that overlaps it."""
    columns = []
    for item in sorted(items, key=start_of):
        s, e = start_of(item), end_of(item)
        for column in columns:
            if not any(_overlaps(s, e, start_of(other), end_of(other)) for other in column):
                column.append(item)
                break
        else:
            columns.append([item])
    return columns


def _initial_slot_heights(intervals, day_start, hour_height):
    heights = {hour: float(hour_height) for hour in HOURS}
    cap = hour_height * MAX_HOUR_EXPANSION

    for hour in HOURS:
        hour_start = day_start + hour * ONE_HOUR
        hour_end = hour_start + ONE_HOUR
        in_hour = [iv for iv in intervals if iv.end > hour_start and iv.start < hour_end]
        if not in_hour:
            continue

        # Short segments: (MIN_TASK_PIXELS * 60) / minutes, capped
        required = float(hour_height)
        for iv in in_hour:
            minutes = _overlap_minutes(iv, hour_start, hour_end)
            if minutes <= 0:
                continue
            required = max(required, min((MIN_TASK_PIXELS * 60.0) / minutes, cap))
        provisional = max(float(hour_height), required)

        stacked = 0.0
        for column in assign_columns(in_hour, lambda iv: iv.start, lambda iv: iv.end):
            column_px = sum((_overlap_minutes(iv, hour_start, hour_end) / 60.0) * provisional for iv in column)
            stacked = max(stacked, column_px)

        heights[hour] = max(provisional, stacked)
    return heights


def _offset_at(moment, day_start, heights, base_offset):
    """Pixel offset of ``moment`` (already clamped to the day) from the grid top."""
    elapsed = moment - day_start
    hour = int(elapsed // ONE_HOUR)
    top = base_offset + sum(heights[h] for h in range(min(hour, 24)))
    if hour >= 24:
        return top
    minutes = (elapsed - hour * ONE_HOUR).total_seconds() / 60.0
    return top + (minutes / 60.0) * heights[hour]


def _clusters(positions):
    """Split start-sorted positions into runs whose intervals chain together by overlap."""
    clusters = []
    current, current_end = [], None
    for pos in positions:
        if current and pos.start >= current_end:
            clusters.append(current)
            current, current_end = [], None
        current.append(pos)
        current_end = pos.end if current_end is None else max(current_end, pos.end)
    if current:
        clusters.append(current)
    return clusters


def _regrow_slots(positions, natural_tops, day_start, initial, hour_height, base_offset):
    heights = dict(initial)
    for hour in HOURS:
        hour_top = base_offset + sum(initial[h] for h in range(hour))
        hour_bottom = hour_top + initial[hour]
        hour_start = day_start + hour * ONE_HOUR
        hour_end = hour_start + ONE_HOUR

        latest_bottom = hour_top
        touched = False
        for pos in positions:
            if not (pos.end > hour_start and pos.start < hour_end):
                continue
            touched = True
            if pos.top > natural_tops[id(pos)] + PUSH_TOLERANCE_PX:
                if pos.top < hour_bottom:
                    latest_bottom = max(latest_bottom, pos.bottom)
            else:
                latest_bottom = max(latest_bottom, min(pos.bottom, hour_bottom))

        if touched:
            heights[hour] = max(initial[hour], float(hour_height), latest_bottom - hour_top)
    return heights


def layout_day(tasks, day, hour_height=BASE_HOUR_HEIGHT, base_offset=0.0):
    """
    Compute slot heights and block geometry for ``tasks`` on calendar ``day``.

    Tasks are clamped to the day; ones missing either end, with non-positive
    duration, or not touching the day are left out. Recomputing from the same
    inputs always gives the same result.
    """
    day_start = start_of_day(day)
    day_end = day_start + ONE_DAY
    intervals = _valid_intervals(tasks)
    heights = _initial_slot_heights(intervals, day_start, hour_height)
    if not intervals:
        return DayLayout(slot_heights=heights)

    positions = []
    for iv in intervals:
        clamped_start = max(day_start, iv.start)
        clamped_end = min(day_end, iv.end)
        if clamped_end <= clamped_start:
            continue
        top = _offset_at(clamped_start, day_start, heights, base_offset)
        bottom = _offset_at(clamped_end, day_start, heights, base_offset)
        positions.append(TaskPosition(
            task=iv.task,
            top=top,
            height=max(bottom - top, float(MIN_TASK_PIXELS)),
            start=iv.start,
            end=iv.end,
        ))

    positions.sort(key=lambda p: p.start)
    natural_tops = {id(pos): pos.top for pos in positions}

    # Columns are assigned over the whole day so the readability floor on
    # block height cannot make neighbours in one column collide.
    column_of = {}
    for index, column in enumerate(assign_columns(positions, lambda p: p.start, lambda p: p.end)):
        floor = None
        for pos in column:
            column_of[id(pos)] = index
            if floor is not None and pos.top < floor:
                pos.top = floor
            floor = pos.bottom if floor is None else max(floor, pos.bottom)

    # First-fit keeps the column indices of an overlapping run contiguous from 0.
    for cluster in _clusters(positions):
        total = max(column_of[id(pos)] for pos in cluster) + 1
        for pos in cluster:
            pos.width = 100.0 / total
            pos.left = column_of[id(pos)] * 100.0 / total

    pushed = any(pos.top > natural_tops[id(pos)] + PUSH_TOLERANCE_PX for pos in positions)
    if pushed:
        heights = _regrow_slots(positions, natural_tops, day_start, heights, hour_height, base_offset)

    return DayLayout(slot_heights=heights, positions=positions, pushed=pushed)


def tasks_for_day(tasks, day) -> List:
    """Tasks whose [start, due) interval touches ``day``."""
    day_start = start_of_day(day)
    day_end = day_start + ONE_DAY
    selected = []
    for task in tasks or []:
        start, end = task_start(task), task_end(task)
        if start is None or end is None:
            continue
        if _overlaps(start, end, day_start, day_end):
            selected.append(task)
    return selected


def first_task_top(layout: DayLayout) -> Optional[float]:
    if not layout.positions:
        return None
    return min(pos.top for pos in layout.positions)
