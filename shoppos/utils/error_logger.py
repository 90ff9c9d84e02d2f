"""
Error Logger Utility
Captures application errors to the database with request context.
"""

import traceback
import json
from datetime import datetime
from flask import request, has_request_context
from flask_login import current_user


# Keys to redact from request data
SENSITIVE_KEYS = {
    'password', 'password_hash', 'token', 'csrf_token', 'secret',
    'authorization', 'cookie', 'session', 'card_number', 'cvv', 'pin'
}


def _sanitize_data(data):
    """Redact sensitive keys from a dict."""
    if not isinstance(data, dict):
        return data
    sanitized = {}
    for key, value in data.items():
        if any(s in key.lower() for s in SENSITIVE_KEYS):
            sanitized[key] = '[REDACTED]'
        elif isinstance(value, dict):
            sanitized[key] = _sanitize_data(value)
        else:
            sanitized[key] = str(value)[:500]  # Truncate long values
    return sanitized


def log_error(error, status_code=500):
    """
    Log an error to the database.

    Safe to call from error handlers: internal failures are swallowed so
    logging never turns one error into two.

    Args:
        error: The exception or error object
        status_code: HTTP status code (default 500)

    Returns:
        ErrorLog or None
    """
    try:
        from shoppos.models import db, ErrorLog

        tb = traceback.format_exc()
        if tb == 'NoneType: None\n':
            tb = None

        error_log = ErrorLog(
            timestamp=datetime.utcnow(),
            error_type=type(error).__name__,
            error_message=str(error)[:2000],
            traceback=tb,
            status_code=status_code,
            is_resolved=False
        )

        if has_request_context():
            error_log.request_url = request.url[:512] if request.url else None
            error_log.request_method = request.method
            error_log.ip_address = request.remote_addr
            error_log.endpoint = request.endpoint

            raw_data = {}
            if request.args:
                raw_data['args'] = dict(request.args)
            if request.is_json and request.get_json(silent=True):
                raw_data['json'] = request.get_json(silent=True)
            if raw_data:
                error_log.request_data = json.dumps(_sanitize_data(raw_data))[:4000]

            if current_user and current_user.is_authenticated:
                error_log.user_id = current_user.id

        db.session.add(error_log)
        db.session.commit()
        return error_log

    except Exception:
        # Never let the error logger crash the app
        try:
            from shoppos.models import db
            db.session.rollback()
        except Exception:
            pass
        return None
