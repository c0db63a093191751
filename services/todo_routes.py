"""Todo CRUD routes. Every read and write is scoped to the credential's user id."""

from datetime import datetime

from backend.credentials import require_credential
from services.validation_service import (
    add_days,
    end_of_day,
    normalize_ids,
    normalize_priority,
    parse_date,
    parse_todo_id,
    to_iso,
)

NOT_OWNER_ERROR = 'Not authorized for this user'

_UNSET = object()


def _now():
    return datetime.now()


def owned_todos(user_id):
    import app as a

    return a.Todo.query.filter(a.Todo.user_id == user_id)


def owner_matches(raw_user_id, auth_user_id):
    return str(raw_user_id).strip() == str(auth_user_id)


def _store_error(exc, body, message):
    import app as a

    a.db.session.rollback()
    a.app.logger.exception(message)
    body.update({'error': str(exc), 'jwtToken': ''})
    return a.jsonify(body), 500


def _parse_optional_date(data, key):
    """_UNSET when absent, None when explicitly null, a datetime, or False when unparseable."""
    if key not in data:
        return _UNSET
    raw = data.get(key)
    if raw is None:
        return None
    parsed = parse_date(raw)
    return parsed if parsed is not None else False


def add_todo():
    import app as a

    Todo = a.Todo
    db = a.db
    jsonify = a.jsonify
    request = a.request

    guard = require_credential(request)
    if not guard.ok:
        return guard.response

    data = request.get_json(silent=True) or {}
    user_id = data.get('userId')
    title = str(data.get('title') or '').strip()
    if user_id in (None, '') or not title:
        return jsonify({'id': None, 'error': 'userId and title are required', 'jwtToken': ''}), 400
    if not owner_matches(user_id, guard.user_id):
        return jsonify({'id': None, 'error': NOT_OWNER_ERROR, 'jwtToken': guard.token}), 403

    start = _parse_optional_date(data, 'startDate')
    due = _parse_optional_date(data, 'dueDate')
    if start is False or due is False:
        return jsonify({'id': None, 'error': 'startDate/dueDate is invalid', 'jwtToken': ''}), 400
    start = None if start is _UNSET else start
    due = None if due is _UNSET else due
    if start and due and due < start:
        return jsonify({'id': None, 'error': 'dueDate must not be before startDate', 'jwtToken': ''}), 400

    todo = Todo(
        user_id=guard.user_id,
        title=title,
        description=str(data.get('description') or '').strip(),
        completed=False,
        created_at=parse_date(data.get('createdAt')) or _now(),
        start_date=start,
        due_date=due,
        priority=normalize_priority(data.get('priority')),
    )
    try:
        db.session.add(todo)
        db.session.commit()
    except Exception as exc:
        return _store_error(exc, {'id': None}, "Failed to add todo")

    return jsonify({'id': todo.id, 'error': '', 'jwtToken': guard.token})


def delete_todo():
    import app as a

    Todo = a.Todo
    db = a.db
    jsonify = a.jsonify
    request = a.request

    guard = require_credential(request)
    if not guard.ok:
        return guard.response

    data = request.get_json(silent=True) or {}
    raw_id = data.get('id')
    if raw_id in (None, ''):
        return jsonify({'deletedCount': 0, 'error': 'id is required', 'jwtToken': ''}), 400
    todo_id = parse_todo_id(raw_id)
    if todo_id is None:
        return jsonify({'deletedCount': 0, 'error': 'invalid id format', 'jwtToken': ''}), 400

    try:
        deleted = owned_todos(guard.user_id).filter(Todo.id == todo_id).delete(synchronize_session=False)
        db.session.commit()
    except Exception as exc:
        return _store_error(exc, {'deletedCount': 0}, "Failed to delete todo")

    if deleted == 0:
        return jsonify({
            'deletedCount': 0,
            'error': 'Not authorized to delete this todo',
            'jwtToken': guard.token,
        }), 403
    return jsonify({'deletedCount': deleted, 'error': '', 'jwtToken': guard.token})


def edit_todo():
    import app as a

    Todo = a.Todo
    db = a.db
    jsonify = a.jsonify
    request = a.request

    guard = require_credential(request)
    if not guard.ok:
        return guard.response

    data = request.get_json(silent=True) or {}
    raw_id = data.get('id')
    if raw_id in (None, ''):
        return jsonify({'modifiedCount': 0, 'error': 'id is required', 'jwtToken': ''}), 400
    todo_id = parse_todo_id(raw_id)
    if todo_id is None:
        return jsonify({'modifiedCount': 0, 'error': 'invalid id format', 'jwtToken': ''}), 400

    changes = {}
    if isinstance(data.get('title'), str):
        title = data['title'].strip()
        if not title:
            return jsonify({'modifiedCount': 0, 'error': 'title cannot be empty', 'jwtToken': ''}), 400
        changes['title'] = title
    if isinstance(data.get('description'), str):
        changes['description'] = data['description'].strip()
    if isinstance(data.get('completed'), bool):
        changes['completed'] = data['completed']
    for key, column in (('dueDate', 'due_date'), ('startDate', 'start_date')):
        value = _parse_optional_date(data, key)
        if value is False:
            return jsonify({'modifiedCount': 0, 'error': f'{key} is invalid', 'jwtToken': ''}), 400
        if value is not _UNSET:
            changes[column] = value
    if 'priority' in data:
        changes['priority'] = normalize_priority(data.get('priority'))

    if not changes:
        return jsonify({'modifiedCount': 0, 'error': 'no fields to update', 'jwtToken': ''}), 400

    try:
        todo = owned_todos(guard.user_id).filter(Todo.id == todo_id).first()
        if todo is None:
            return jsonify({
                'modifiedCount': 0,
                'error': 'Not authorized to edit this todo',
                'jwtToken': guard.token,
            }), 403

        start = changes.get('start_date', todo.start_date)
        due = changes.get('due_date', todo.due_date)
        if start and due and due < start:
            return jsonify({'modifiedCount': 0, 'error': 'dueDate must not be before startDate', 'jwtToken': ''}), 400

        modified = False
        completed = changes.pop('completed', None)
        if completed is not None and completed != bool(todo.completed):
            todo.set_completed(completed, _now())
            modified = True
        for column, value in changes.items():
            if getattr(todo, column) != value:
                setattr(todo, column, value)
                modified = True
        db.session.commit()
    except Exception as exc:
        return _store_error(exc, {'modifiedCount': 0}, "Failed to edit todo")

    return jsonify({'modifiedCount': 1 if modified else 0, 'error': '', 'jwtToken': guard.token})


def get_todos():
    import app as a

    Todo = a.Todo
    jsonify = a.jsonify
    request = a.request

    guard = require_credential(request)
    if not guard.ok:
        return guard.response

    data = request.get_json(silent=True) or {}
    user_id = data.get('userId')
    if user_id in (None, ''):
        return jsonify({'results': [], 'error': 'userId is required', 'jwtToken': ''}), 400
    if not owner_matches(user_id, guard.user_id):
        return jsonify({'results': [], 'error': NOT_OWNER_ERROR, 'jwtToken': guard.token}), 403

    try:
        todos = owned_todos(guard.user_id).order_by(Todo.created_at.desc(), Todo.id.desc()).all()
    except Exception as exc:
        return _store_error(exc, {'results': []}, "Failed to list todos")

    return jsonify({'results': [t.to_dict() for t in todos], 'error': '', 'jwtToken': guard.token})


def check_todo():
    import app as a

    Todo = a.Todo
    db = a.db
    jsonify = a.jsonify
    request = a.request

    guard = require_credential(request)
    if not guard.ok:
        return guard.response

    data = request.get_json(silent=True) or {}
    raw_id = data.get('id')
    if raw_id in (None, ''):
        return jsonify({'modifiedCount': 0, 'error': 'id is required', 'jwtToken': ''}), 400
    todo_id = parse_todo_id(raw_id)
    if todo_id is None:
        return jsonify({'modifiedCount': 0, 'error': 'invalid id format', 'jwtToken': ''}), 400

    try:
        todo = owned_todos(guard.user_id).filter(Todo.id == todo_id).first()
        if todo is None:
            return jsonify({
                'modifiedCount': 0,
                'error': 'Not authorized to modify this todo',
                'jwtToken': guard.token,
            }), 403
        new_status = todo.set_completed(not todo.completed, _now())
        db.session.commit()
    except Exception as exc:
        return _store_error(exc, {'modifiedCount': 0}, "Failed to toggle todo")

    return jsonify({'modifiedCount': 1, 'newStatus': new_status, 'error': '', 'jwtToken': guard.token})


def check_bulk():
    import app as a

    Todo = a.Todo
    db = a.db
    jsonify = a.jsonify
    request = a.request

    guard = require_credential(request)
    if not guard.ok:
        return guard.response

    data = request.get_json(silent=True) or {}
    raw_ids = data.get('ids')
    completed = data.get('completed')
    if not isinstance(raw_ids, list) or not isinstance(completed, bool):
        return jsonify({'modifiedCount': 0, 'error': 'ids[] and completed(boolean) required', 'jwtToken': ''}), 400
    ids = normalize_ids(raw_ids)
    if not ids:
        return jsonify({'modifiedCount': 0, 'error': 'no valid ids', 'jwtToken': ''}), 400

    try:
        todos = owned_todos(guard.user_id).filter(Todo.id.in_(ids)).all()
        now = _now()
        modified = 0
        for todo in todos:
            if bool(todo.completed) != completed:
                todo.set_completed(completed, now)
                modified += 1
        db.session.commit()
    except Exception as exc:
        return _store_error(exc, {'modifiedCount': 0}, "Failed to bulk-toggle todos")

    return jsonify({'modifiedCount': modified, 'error': '', 'jwtToken': guard.token})


def next_day():
    import app as a

    Todo = a.Todo
    db = a.db
    jsonify = a.jsonify
    request = a.request

    guard = require_credential(request)
    if not guard.ok:
        return guard.response

    data = request.get_json(silent=True) or {}
    raw_id = data.get('id')
    if raw_id in (None, ''):
        return jsonify({'modifiedCount': 0, 'newDueDate': None, 'error': 'id is required', 'jwtToken': ''}), 400
    todo_id = parse_todo_id(raw_id)
    if todo_id is None:
        return jsonify({'modifiedCount': 0, 'newDueDate': None, 'error': 'invalid id format', 'jwtToken': ''}), 400

    try:
        todo = owned_todos(guard.user_id).filter(Todo.id == todo_id).first()
        if todo is None:
            return jsonify({
                'modifiedCount': 0,
                'newDueDate': None,
                'error': 'Not authorized to modify this todo',
                'jwtToken': guard.token,
            }), 403
        if todo.due_date:
            todo.due_date = add_days(todo.due_date, 1)
        else:
            todo.due_date = end_of_day(add_days(_now(), 1))
        db.session.commit()
    except Exception as exc:
        return _store_error(exc, {'modifiedCount': 0, 'newDueDate': None}, "Failed to move todo to next day")

    return jsonify({
        'modifiedCount': 1,
        'newDueDate': to_iso(todo.due_date),
        'error': '',
        'jwtToken': guard.token,
    })
