"""
User Authentication and Authorization Module
Handles session login state, password hashing and role-based route protection.

Roles:
- ADMIN: agency staff, full access
- CLIENT: customers, limited to their own projects, invoices and files

The role stored in the session is re-read from the database before every
request, so a promotion or demotion takes effect without logging in again.
"""
from datetime import datetime
from functools import wraps
from flask import session, jsonify, g
from werkzeug.security import generate_password_hash, check_password_hash
import logging

logger = logging.getLogger(__name__)

ROLE_ADMIN = 'ADMIN'
ROLE_CLIENT = 'CLIENT'

INVALID_CREDENTIALS = "Invalid email or password"
EMAIL_NOT_VERIFIED = "Please verify your email before signing in"


# Use pbkdf2 method which is compatible with older Python/OpenSSL versions
def safe_generate_password_hash(password):
    """Generate password hash using pbkdf2 for compatibility"""
    return generate_password_hash(password, method='pbkdf2:sha256')


def safe_check_password_hash(pwhash, password):
    """Check password hash; users created through OAuth have no hash"""
    if not pwhash:
        return False
    return check_password_hash(pwhash, password)


# ============================================================================
# SESSION STATE
# ============================================================================

def login_user(user):
    """Set user session from a User model"""
    session['user_id'] = user.id
    session['user_email'] = user.email
    session['user_name'] = user.name
    session['user_role'] = user.role
    session.permanent = True


def logout_user():
    """Clear user session"""
    session.clear()


def get_current_user():
    """Get currently logged in user as a plain dict, or None"""
    user_id = session.get('user_id')
    if not user_id:
        return None
    return {
        'id': user_id,
        'email': session.get('user_email'),
        'name': session.get('user_name'),
        'role': session.get('user_role', ROLE_CLIENT),
    }


def is_authenticated():
    """Check if user is logged in"""
    return 'user_id' in session


def is_admin(user=None):
    """Check if the given (or current) user has the ADMIN role"""
    if user is None:
        user = get_current_user()
    return bool(user) and user.get('role') == ROLE_ADMIN


def refresh_session_role():
    """
    Re-read role and activation of the session user from the database.

    Registered as a before_request hook. Users that were deleted or
    deactivated since they logged in are logged out.
    """
    user_id = session.get('user_id')
    if not user_id:
        return

    from database.connection import get_db_session
    from database.models import User

    with get_db_session() as db:
        user = db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            logger.info(f"Session for user {user_id} dropped (user missing or inactive)")
            logout_user()
            return
        if session.get('user_role') != user.role:
            logger.info(f"Role for user {user_id} refreshed: {session.get('user_role')} -> {user.role}")
            session['user_role'] = user.role
        session['user_name'] = user.name
        user.last_active_at = datetime.utcnow()


def authenticate_user(db, email, password):
    """
    Authenticate email + password credentials.

    Returns:
        Tuple of (user, error_message)
    """
    from database.models import User

    user = db.query(User).filter(User.email == (email or '').strip().lower()).first()

    if not user or not safe_check_password_hash(user.password_hash, password):
        return None, INVALID_CREDENTIALS

    if not user.is_active:
        return None, EMAIL_NOT_VERIFIED

    user.last_active_at = datetime.utcnow()
    logger.info(f"User authenticated: {user.email}")
    return user, None


# ============================================================================
# ROUTE PROTECTION
# ============================================================================

def login_required(f):
    """Decorator to require login for a route"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            return jsonify({'success': False, 'error': 'Authentication required', 'redirect': '/auth/signin'}), 401
        g.current_user = get_current_user()
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Decorator to require the ADMIN role"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            return jsonify({'success': False, 'error': 'Authentication required', 'redirect': '/auth/signin'}), 401

        if not is_admin():
            return jsonify({'success': False, 'error': 'Admin permission required'}), 403

        g.current_user = get_current_user()
        return f(*args, **kwargs)
    return decorated_function
