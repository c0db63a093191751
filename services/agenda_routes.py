"""Bucketed todo views (current / previous) and the day timeline geometry."""

from datetime import date, datetime

from backend.bucketing import (
    DEFAULT_HORIZON_DAYS,
    DEFAULT_PREVIOUS_LIMIT,
    bucket_completed_tasks,
    bucket_open_tasks,
    sort_completed,
)
from backend.credentials import require_credential
from backend.timeline_layout import BASE_HOUR_HEIGHT, first_task_top, layout_day, tasks_for_day
from services.todo_routes import NOT_OWNER_ERROR, owned_todos, owner_matches
from services.validation_service import parse_bool, parse_date, parse_int

CURRENT_BUCKETS = ('overdue', 'today', 'upcoming', 'noDue')
PREVIOUS_BUCKETS = ('today', 'yesterday', 'last7', 'last30', 'older', 'noTimestamp')


def _now():
    return datetime.now()


def _empty(buckets, error, token=''):
    body = {name: [] for name in buckets}
    body.update({'counts': {}, 'error': error, 'jwtToken': token})
    return body


def _guard_owner(request, buckets):
    """Run the credential guard and the userId ownership check; returns (guard, data, error_response)."""
    import app as a

    jsonify = a.jsonify

    guard = require_credential(request)
    if not guard.ok:
        return guard, None, guard.response

    data = request.get_json(silent=True) or {}
    user_id = data.get('userId')
    if user_id in (None, ''):
        return guard, data, (jsonify(_empty(buckets, 'userId is required')), 400)
    if not owner_matches(user_id, guard.user_id):
        return guard, data, (jsonify(_empty(buckets, NOT_OWNER_ERROR, guard.token)), 403)
    return guard, data, None


def _serialize(buckets):
    return {name: [todo.to_dict() for todo in todos] for name, todos in buckets.as_lists().items()}


def current_todos():
    import app as a

    Todo = a.Todo
    jsonify = a.jsonify
    request = a.request

    guard, data, failure = _guard_owner(request, CURRENT_BUCKETS)
    if failure:
        return failure

    days = parse_int(data.get('days'), DEFAULT_HORIZON_DAYS)
    try:
        todos = owned_todos(guard.user_id).filter(Todo.completed.is_(False)).all()
    except Exception as exc:
        a.db.session.rollback()
        a.app.logger.exception("Failed to load current todos")
        return jsonify(_empty(CURRENT_BUCKETS, str(exc))), 500

    buckets = bucket_open_tasks(todos, _now(), days=days)
    body = _serialize(buckets)
    body.update({'counts': buckets.counts(), 'error': '', 'jwtToken': guard.token})
    return jsonify(body)


def previous_todos():
    import app as a

    Todo = a.Todo
    jsonify = a.jsonify
    request = a.request

    guard, data, failure = _guard_owner(request, PREVIOUS_BUCKETS)
    if failure:
        return failure

    limit = parse_int(data.get('limit'), DEFAULT_PREVIOUS_LIMIT)
    if limit is None or limit < 0:
        limit = DEFAULT_PREVIOUS_LIMIT
    include_no_timestamp = parse_bool(data.get('includeNoTimestamp'), default=True)

    try:
        completed = owned_todos(guard.user_id).filter(Todo.completed.is_(True)).all()
    except Exception as exc:
        a.db.session.rollback()
        a.app.logger.exception("Failed to load completed todos")
        return jsonify(_empty(PREVIOUS_BUCKETS, str(exc))), 500

    todos = sort_completed(completed)
    if limit:
        # 0 means no limit
        todos = todos[:limit]
    buckets = bucket_completed_tasks(todos, _now(), include_no_timestamp=include_no_timestamp)
    body = _serialize(buckets)
    body.update({'counts': buckets.counts(), 'error': '', 'jwtToken': guard.token})
    return jsonify(body)


def timeline():
    import app as a

    jsonify = a.jsonify
    request = a.request

    guard, data, failure = _guard_owner(request, ())
    if failure:
        return failure

    now = _now()
    raw_day = data.get('date')
    day = parse_date(raw_day) if raw_day else now
    if day is None:
        return jsonify({'positions': [], 'slotHeights': [], 'error': 'date is invalid', 'jwtToken': ''}), 400
    if day.date() >= date.max:
        return jsonify({'positions': [], 'slotHeights': [], 'error': 'date is out of range', 'jwtToken': ''}), 400
    hour_height = parse_int(data.get('hourHeight'), BASE_HOUR_HEIGHT)
    if not hour_height or hour_height <= 0:
        hour_height = BASE_HOUR_HEIGHT
    try:
        base_offset = float(data.get('baseOffset') or 0)
    except (TypeError, ValueError):
        base_offset = 0.0

    try:
        todos = owned_todos(guard.user_id).all()
    except Exception as exc:
        a.db.session.rollback()
        a.app.logger.exception("Failed to load todos for timeline")
        return jsonify({'positions': [], 'slotHeights': [], 'error': str(exc), 'jwtToken': ''}), 500

    layout = layout_day(tasks_for_day(todos, day), day, hour_height=hour_height, base_offset=base_offset)
    body = layout.to_dict(now=now)
    body.update({
        'date': day.date().isoformat(),
        'firstTaskTop': first_task_top(layout),
        'error': '',
        'jwtToken': guard.token,
    })
    return jsonify(body)
