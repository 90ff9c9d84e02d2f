"""
Authentication Routes
Handles staff login and logout for the point of sale
"""

from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, current_user, login_required
from flask_wtf.csrf import generate_csrf
from shoppos import limiter
from shoppos.models import db, User

bp = Blueprint('auth', __name__)


@bp.route('/login', methods=['POST'])
@limiter.limit(lambda: current_app.config['LOGIN_RATE_LIMIT'])
def login():
    """Staff login"""
    data = request.get_json(silent=True) or request.form
    email = data.get('email')
    password = data.get('password')

    user = User.query.filter(db.func.lower(User.email) == User.normalize_email(email)).first()

    if user is None or not user.check_password(password or ''):
        current_app.logger.warning(f"Failed login attempt for {email}")
        return jsonify({'success': False, 'error': 'Invalid email or password'}), 401

    if not user.is_active:
        return jsonify({'success': False, 'error': 'Your account has been deactivated'}), 403

    login_user(user)
    user.last_login = datetime.utcnow()
    db.session.commit()

    current_app.logger.info(f"User {user.email} logged in")
    return jsonify({'success': True, 'user': user.to_dict()})


@bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Staff logout"""
    current_app.logger.info(f"User {current_user.email} logged out")
    logout_user()
    return jsonify({'success': True})


@bp.route('/csrf-token')
def csrf_token():
    """Token to send back in the X-CSRFToken header of POS requests"""
    return jsonify({'csrf_token': generate_csrf()})
