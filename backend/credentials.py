"""Signed access credentials: issue, validate, refresh, and the per-request guard.

Every authenticated endpoint runs ``require_credential`` first. The guard keeps
the legacy response contract: a missing or invalid credential is answered with
HTTP 200 and an ``error`` string, an unreadable identity with HTTP 401.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import current_app, jsonify
from jose import JWTError, jwt

ALGORITHM = 'HS256'
INVALID_CREDENTIAL_ERROR = 'The JWT is no longer valid'
UNKNOWN_USER_ERROR = 'Unable to determine user from token'

# Older clients put the user id under different keys.
_USER_ID_KEYS = ('id', 'userId', 'UserID', 'userID')


class CredentialConfigError(RuntimeError):
    """Raised when no signing secret is configured."""


@dataclass
class CredentialCheck:
    ok: bool
    user_id: int = None
    token: str = ''
    response: object = None


def _secret():
    secret = current_app.config.get('ACCESS_TOKEN_SECRET')
    if not secret:
        raise CredentialConfigError('ACCESS_TOKEN_SECRET is not configured')
    return secret


def issue_credential(first_name, last_name, user_id):
    now = datetime.now(timezone.utc)
    claims = {
        'id': user_id,
        'firstName': first_name or '',
        'lastName': last_name or '',
        'iat': int(now.timestamp()),
        'jti': secrets.token_hex(8),
    }
    ttl = current_app.config.get('ACCESS_TOKEN_TTL_MINUTES')
    if ttl:
        claims['exp'] = int((now + timedelta(minutes=int(ttl))).timestamp())
    return jwt.encode(claims, _secret(), algorithm=ALGORITHM)


def decode_credential(token):
    """Return the verified payload, or None if the token is malformed, forged or expired."""
    if not token or not isinstance(token, str):
        return None
    try:
        return jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    except JWTError:
        return None


def is_valid(token):
    try:
        return decode_credential(token) is not None
    except CredentialConfigError:
        return False


def refresh_credential(token):
    """Re-issue a credential carrying the same identity; only verified tokens are refreshed."""
    payload = decode_credential(token)
    if payload is None:
        return None
    return issue_credential(payload.get('firstName'), payload.get('lastName'), extract_user_id(payload))


def extract_user_id(payload):
    if not payload:
        return None
    for key in _USER_ID_KEYS:
        value = payload.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
    return None


def token_from_request(request):
    data = request.get_json(silent=True) or {}
    if isinstance(data, dict):
        for key in ('jwtToken', 'accessToken'):
            if data.get(key):
                return data[key]
    header = request.headers.get('Authorization') or ''
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    return None


def require_credential(request):
    token = token_from_request(request)
    payload = decode_credential(token)
    if payload is None:
        current_app.logger.info("Rejected credential on %s", request.path)
        return CredentialCheck(
            ok=False,
            response=(jsonify({'error': INVALID_CREDENTIAL_ERROR, 'jwtToken': ''}), 200),
        )

    user_id = extract_user_id(payload)
    if user_id is None:
        return CredentialCheck(
            ok=False,
            response=(jsonify({'error': UNKNOWN_USER_ERROR, 'jwtToken': ''}), 401),
        )

    refreshed = issue_credential(payload.get('firstName'), payload.get('lastName'), user_id)
    return CredentialCheck(ok=True, user_id=user_id, token=refreshed)
