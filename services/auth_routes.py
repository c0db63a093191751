"""Account routes: login, registration, email verification and password reset."""

import secrets
from datetime import datetime, timedelta
from urllib.parse import quote

from backend.credentials import issue_credential
from backend.mailer import reset_email, verification_email

CODE_TTL_MINUTES = 15


def _now():
    return datetime.now()


def _six_digit():
    return str(100000 + secrets.randbelow(900000))


def _token24():
    return secrets.token_hex(24)


def _empty_identity(error):
    return {'id': -1, 'firstName': '', 'lastName': '', 'jwtToken': '', 'error': error}


def _find_user(login=None, email=None):
    import app as a

    User = a.User
    db = a.db

    if login:
        return User.query.filter_by(login=str(login).strip()).first()
    if email:
        return User.query.filter(db.func.lower(User.email) == str(email).strip().lower()).first()
    return None


def _send_best_effort(kind, to_addr, code, link):
    """Email delivery never fails the primary operation."""
    import app as a

    subject, body = (verification_email if kind == 'verify' else reset_email)(code, link)
    try:
        a.get_mailer().send(to_addr, subject, body)
    except Exception as exc:
        a.app.logger.warning("Failed to send %s email to %s: %s", kind, to_addr, exc)


def _issue_verification(user):
    import app as a

    code, token = _six_digit(), _token24()
    user.email_verified = False
    user.verification_code = code
    user.verification_token = token
    user.verification_expires = _now() + timedelta(minutes=CODE_TTL_MINUTES)
    link = f"{a.app.config['BACKEND_BASE_URL']}/api/verify-email-link?login={quote(user.login)}&token={token}"
    return code, link


def _issue_reset(user):
    import app as a

    code, token = _six_digit(), _token24()
    user.reset_code = code
    user.reset_token = token
    user.reset_expires = _now() + timedelta(minutes=CODE_TTL_MINUTES)
    link = f"{a.app.config['FRONTEND_BASE_URL']}/reset-password?login={quote(user.login)}&token={token}"
    return code, link


def _expired(expires_at):
    return expires_at is None or _now() > expires_at


def _same_secret(stored, supplied):
    # bytes, so non-ASCII input compares unequal instead of raising
    return secrets.compare_digest(str(stored).encode(), str(supplied).encode())


def login():
    import app as a

    db = a.db
    jsonify = a.jsonify
    request = a.request

    data = request.get_json(silent=True) or {}
    login_name = str(data.get('login') or '').strip()
    password = str(data.get('password') or '')
    if not login_name or not password:
        return jsonify(_empty_identity('login and password are required')), 400

    try:
        user = _find_user(login=login_name)
    except Exception as exc:
        db.session.rollback()
        a.app.logger.exception("Login lookup failed")
        return jsonify(_empty_identity(str(exc))), 500

    if not user or not user.check_password(password):
        return jsonify(_empty_identity('Invalid user name/password')), 200
    if not user.email_verified:
        return jsonify(_empty_identity('Please verify your email before logging in.')), 200

    token = issue_credential(user.first_name, user.last_name, user.id)
    return jsonify({
        'id': user.id,
        'firstName': user.first_name or '',
        'lastName': user.last_name or '',
        'jwtToken': token,
        'error': '',
    })


def register():
    import app as a

    User = a.User
    db = a.db
    jsonify = a.jsonify
    request = a.request

    data = request.get_json(silent=True) or {}
    first_name = str(data.get('firstName') or '').strip()
    last_name = str(data.get('lastName') or '').strip()
    login_name = str(data.get('login') or '').strip()
    password = str(data.get('password') or '')
    email = str(data.get('email') or '').strip()

    if not first_name or not last_name or not login_name or not password or not email:
        return jsonify(_empty_identity('firstName, lastName, login, password, and email are required')), 400

    try:
        existing = User.query.filter(
            db.or_(User.login == login_name, db.func.lower(User.email) == email.lower())
        ).first()
        if existing:
            field = 'login' if existing.login == login_name else 'email'
            return jsonify(_empty_identity(f'An account with that {field} already exists')), 200

        next_id = (db.session.query(db.func.coalesce(db.func.max(User.id), 0)).scalar() or 0) + 1
        user = User(
            id=next_id,
            first_name=first_name,
            last_name=last_name,
            login=login_name,
            email=email,
            email_verified=False,
        )
        user.set_password(password)
        code, link = _issue_verification(user)
        db.session.add(user)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        a.app.logger.exception("Registration failed for %s", login_name)
        return jsonify(_empty_identity(str(exc))), 500

    a.app.logger.info("Registered user %s (%s)", user.id, user.login)
    _send_best_effort('verify', user.email, code, link)

    token = issue_credential(user.first_name, user.last_name, user.id)
    return jsonify({
        'id': user.id,
        'firstName': user.first_name,
        'lastName': user.last_name,
        'jwtToken': token,
        'error': '',
    })


def request_email_verification():
    import app as a

    db = a.db
    jsonify = a.jsonify
    request = a.request

    data = request.get_json(silent=True) or {}
    login_name, email = data.get('login'), data.get('email')
    if not login_name and not email:
        return jsonify({'sent': False, 'error': 'login or email is required'}), 400

    try:
        user = _find_user(login=login_name, email=email)
        if not user:
            return jsonify({'sent': False, 'error': 'user not found'})
        if not user.email:
            return jsonify({'sent': False, 'error': 'user has no email'})
        code, link = _issue_verification(user)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        a.app.logger.exception("Verification request failed")
        return jsonify({'sent': False, 'error': str(exc)}), 500

    _send_best_effort('verify', user.email, code, link)
    payload = {'sent': True, 'error': ''}
    if a.app.config.get('DEBUG_EMAIL'):
        payload.update({'code': code, 'link': link})
    return jsonify(payload)


def verify_email():
    import app as a

    db = a.db
    jsonify = a.jsonify
    request = a.request

    data = request.get_json(silent=True) or {}
    login_name, code = data.get('login'), data.get('code')
    if not login_name or not code:
        return jsonify({'verified': False, 'error': 'login and code are required'}), 400

    try:
        user = _find_user(login=login_name)
        if not user:
            return jsonify({'verified': False, 'error': 'user not found'})
        if user.email_verified:
            return jsonify({'verified': True, 'error': ''})
        if not user.verification_code or not user.verification_expires:
            return jsonify({'verified': False, 'error': 'no code requested'})
        if _expired(user.verification_expires):
            return jsonify({'verified': False, 'error': 'code expired'})
        if str(user.verification_code) != str(code).strip():
            return jsonify({'verified': False, 'error': 'invalid code'})

        user.email_verified = True
        user.clear_verification()
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        a.app.logger.exception("Email verification failed")
        return jsonify({'verified': False, 'error': str(exc)}), 500

    return jsonify({'verified': True, 'error': ''})


def verify_email_link():
    import app as a

    db = a.db
    redirect = a.redirect
    request = a.request

    login_name = request.args.get('login')
    token = request.args.get('token')
    if not login_name or not token:
        return 'Missing login or token', 400

    try:
        user = _find_user(login=login_name)
        if not user:
            return 'User not found', 404
        if not user.verification_token or not user.verification_expires:
            return 'No token issued', 400
        if _expired(user.verification_expires):
            return 'Token expired', 400
        if not _same_secret(user.verification_token, token):
            return 'Invalid token', 400

        user.email_verified = True
        user.clear_verification()
        db.session.commit()
    except Exception:
        db.session.rollback()
        a.app.logger.exception("Email link verification failed")
        return 'Server error', 500

    return redirect(f"{a.app.config['FRONTEND_BASE_URL']}/?verified=1")


def request_password_reset():
    import app as a

    db = a.db
    jsonify = a.jsonify
    request = a.request

    data = request.get_json(silent=True) or {}
    login_name, email = data.get('login'), data.get('email')
    if not login_name and not email:
        return jsonify({'sent': False, 'error': 'login or email is required'}), 400

    try:
        user = _find_user(login=login_name, email=email)
        if not user:
            return jsonify({'sent': False, 'error': 'user not found'})
        if not user.email:
            return jsonify({'sent': False, 'error': 'user has no email'})
        code, link = _issue_reset(user)
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        a.app.logger.exception("Password reset request failed")
        return jsonify({'sent': False, 'error': str(exc)}), 500

    _send_best_effort('reset', user.email, code, link)
    payload = {'sent': True, 'error': ''}
    if a.app.config.get('DEBUG_EMAIL'):
        payload.update({'code': code, 'link': link})
    return jsonify(payload)


def _check_reset(user, secret_value, field):
    """Return an error string, or '' when the reset code/token is usable."""
    stored = user.reset_code if field == 'code' else user.reset_token
    if not stored or not user.reset_expires:
        return 'no reset requested'
    if _expired(user.reset_expires):
        return f'{field} expired'
    if not _same_secret(stored, str(secret_value).strip()):
        return f'invalid {field}'
    return ''


def verify_reset_code():
    import app as a

    jsonify = a.jsonify
    request = a.request

    data = request.get_json(silent=True) or {}
    login_name, email, code = data.get('login'), data.get('email'), data.get('code')
    if (not login_name and not email) or not code:
        return jsonify({'valid': False, 'error': 'login or email, and code are required'}), 400

    try:
        user = _find_user(login=login_name, email=email)
    except Exception as exc:
        a.db.session.rollback()
        a.app.logger.exception("Reset code check failed")
        return jsonify({'valid': False, 'error': str(exc)}), 500

    if not user:
        return jsonify({'valid': False, 'error': 'user not found'})
    error = _check_reset(user, code, 'code')
    return jsonify({'valid': not error, 'error': error})


def _reset_password(field):
    import app as a

    db = a.db
    jsonify = a.jsonify
    request = a.request

    data = request.get_json(silent=True) or {}
    login_name, email = data.get('login'), data.get('email')
    secret_value = data.get(field)
    new_password = data.get('newPassword')
    if (not login_name and not email) or not secret_value or not new_password:
        return jsonify({'error': f'login, {field}, newPassword required'}), 400

    try:
        user = _find_user(login=login_name, email=email)
        if not user:
            return jsonify({'error': 'user not found'})
        error = _check_reset(user, secret_value, field)
        if error:
            return jsonify({'error': error})

        user.set_password(str(new_password))
        user.clear_reset()
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        a.app.logger.exception("Password reset failed")
        return jsonify({'error': str(exc)}), 500

    a.app.logger.info("Password reset for user %s via %s", user.id, field)
    return jsonify({'error': ''})


def reset_password_with_code():
    return _reset_password('code')


def reset_password_with_token():
    return _reset_password('token')
