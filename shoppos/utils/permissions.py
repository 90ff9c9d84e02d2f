"""
Permission Decorators
"""

from functools import wraps
from flask import jsonify
from flask_login import current_user


def pos_operator_required(f):
    """
    Decorator to require a logged-in staff member allowed to run the POS

    Usage:
        @pos_operator_required
        def complete():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'success': False, 'error': 'Authentication required'}), 401

        if not current_user.is_pos_operator:
            return jsonify({'success': False, 'error': 'Insufficient permissions'}), 403

        return f(*args, **kwargs)
    return decorated_function
