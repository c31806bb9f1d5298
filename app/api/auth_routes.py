"""
Authentication Routes Blueprint

Credentials login, signup with email verification, password reset,
Google OAuth and magic-link sign in.
"""

import os
from urllib.parse import urlencode

from flask import Blueprint, request, jsonify, redirect, session, current_app
from requests_oauthlib import OAuth2Session
from oauthlib.oauth2 import OAuth2Error
import requests
import logging

import auth
from app.utils.helpers import get_json_body, get_extension, get_tasks
from database.connection import get_db_session
from services.email_hooks import schedule_hook, log_email
from services.errors import ServiceError, ServiceUnavailable, ValidationError
from services.csrf import csrf
from services.password_reset_service import PasswordResetService
from services.rate_limiter import auth_limit, email_limit
from services.users_repository import UsersRepository
from services.verification_service import VerificationService
from validators import validate_email

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth_bp', __name__)
csrf.exempt(auth_bp)
auth_limit(auth_bp)

GOOGLE_AUTH_URL = 'https://accounts.google.com/o/oauth2/v2/auth'
GOOGLE_TOKEN_URL = 'https://oauth2.googleapis.com/token'
GOOGLE_USERINFO_URL = 'https://www.googleapis.com/oauth2/v3/userinfo'
GOOGLE_SCOPES = ['openid', 'email', 'profile']

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, you will receive a password reset link"


def dashboard_path(user) -> str:
    return '/admin' if user.role == auth.ROLE_ADMIN else '/client/dashboard'


def app_redirect(path: str, **params):
    url = f"{current_app.config['APP_URL'].rstrip('/')}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return redirect(url)


def sign_in(user, created: bool):
    """Log the user in; first sign ins also get the welcome email."""
    auth.login_user(user)
    if created:
        schedule_hook(get_tasks(), get_extension('email_service'), 'on_user_registered', user.id)


# ============================================================================
# LOGIN/LOGOUT ROUTES
# ============================================================================

@auth_bp.route('/api/auth/login', methods=['POST'])
def api_login():
    """Email + password login"""
    data = get_json_body()
    email = data.get('email')
    password = data.get('password')

    if not email or not password:
        raise ValidationError("Email and password are required")

    with get_db_session() as db:
        user, error = auth.authenticate_user(db, email, password)
        if error:
            status = 403 if error == auth.EMAIL_NOT_VERIFIED else 401
            return jsonify({'success': False, 'error': error}), status
        auth.login_user(user)
        payload = user.to_dict()

    return jsonify({'success': True, 'user': payload, 'redirect': dashboard_path(user)})


@auth_bp.route('/api/auth/logout', methods=['POST'])
def api_logout():
    """Clearing the session also drops its CSRF secret, revoking issued tokens"""
    logger.info(f"User {session.get('user_id')} logged out")
    auth.logout_user()
    return jsonify({'success': True})


@auth_bp.route('/api/auth/session', methods=['GET'])
def get_session():
    """Current session user, or null"""
    return jsonify({'success': True, 'user': auth.get_current_user()})


# ============================================================================
# SIGNUP & EMAIL VERIFICATION
# ============================================================================

@auth_bp.route('/api/auth/signup', methods=['POST'])
def api_signup():
    data = get_json_body()
    with get_db_session() as db:
        result = VerificationService(db, get_extension('email_service')).signup(
            data.get('name'), data.get('email'), data.get('password')
        )
    return jsonify({
        'success': True,
        'message': 'Account created. Please check your email for the verification code.',
        **result
    }), 201


@auth_bp.route('/api/auth/verify-email', methods=['POST'])
def api_verify_email():
    data = get_json_body()
    with get_db_session() as db:
        user = VerificationService(db, get_extension('email_service')).verify(
            data.get('userId'), data.get('code')
        )
        user_id = user.id
        payload = user.to_dict()

    schedule_hook(get_tasks(), get_extension('email_service'), 'on_user_registered', user_id)
    return jsonify({'success': True, 'message': 'Email verified successfully', 'user': payload})


@auth_bp.route('/api/auth/verify-email', methods=['PUT'])
def api_resend_verification():
    data = get_json_body()
    with get_db_session() as db:
        result = VerificationService(db, get_extension('email_service')).resend(
            user_id=data.get('userId'), email=data.get('email')
        )
    return jsonify({'success': True, 'message': 'Verification code sent', **result})


# ============================================================================
# PASSWORD RESET
# ============================================================================

@auth_bp.route('/api/auth/forgot-password', methods=['POST'])
@email_limit
def api_forgot_password():
    data = get_json_body()
    with get_db_session() as db:
        PasswordResetService(db, get_extension('email_service')).request_reset(data.get('email'))
    return jsonify({'success': True, 'message': FORGOT_PASSWORD_MESSAGE})


@auth_bp.route('/api/auth/reset-password', methods=['GET'])
def api_validate_reset_token():
    with get_db_session() as db:
        result = PasswordResetService(db).validate_token(request.args.get('token'))
    return jsonify(result)


@auth_bp.route('/api/auth/reset-password', methods=['POST'])
def api_reset_password():
    data = get_json_body()
    with get_db_session() as db:
        PasswordResetService(db).reset_password(data.get('token'), data.get('password'))
    return jsonify({'success': True, 'message': 'Password has been reset successfully'})


# ============================================================================
# GOOGLE OAUTH
# ============================================================================

def google_session(state=None) -> OAuth2Session:
    client_id = current_app.config.get('GOOGLE_CLIENT_ID')
    if not client_id or not current_app.config.get('GOOGLE_CLIENT_SECRET'):
        raise ServiceUnavailable("Google sign in is not configured")
    if current_app.debug:
        # local callbacks run over plain http
        os.environ.setdefault('OAUTHLIB_INSECURE_TRANSPORT', '1')
    redirect_uri = f"{current_app.config['APP_URL'].rstrip('/')}/api/auth/oauth/google/callback"
    return OAuth2Session(client_id, redirect_uri=redirect_uri, scope=GOOGLE_SCOPES, state=state)


@auth_bp.route('/api/auth/oauth/google', methods=['GET'])
def google_login():
    oauth = google_session()
    authorization_url, state = oauth.authorization_url(
        GOOGLE_AUTH_URL, access_type='online', prompt='select_account'
    )
    session['oauth_state'] = state
    return redirect(authorization_url)


@auth_bp.route('/api/auth/oauth/google/callback', methods=['GET'])
def google_callback():
    if request.args.get('error'):
        logger.info(f"Google sign in cancelled: {request.args.get('error')}")
        return app_redirect('/auth/signin', error='OAuthCallback')

    oauth = google_session(state=session.pop('oauth_state', None))
    try:
        oauth.fetch_token(
            GOOGLE_TOKEN_URL,
            client_secret=current_app.config['GOOGLE_CLIENT_SECRET'],
            authorization_response=request.url
        )
        profile = oauth.get(GOOGLE_USERINFO_URL, timeout=15).json()
    except (OAuth2Error, requests.RequestException, ValueError) as e:
        logger.error(f"Google OAuth callback failed: {e}")
        return app_redirect('/auth/signin', error='OAuthCallback')

    if not profile.get('email') or not profile.get('email_verified', True):
        logger.warning("Google profile without a verified email")
        return app_redirect('/auth/signin', error='OAuthAccountNotLinked')

    with get_db_session() as db:
        user, created = UsersRepository(db).get_or_create_verified_user(
            profile['email'], name=profile.get('name'), image=profile.get('picture')
        )
        sign_in(user, created)
        target = dashboard_path(user)

    return app_redirect(target)


# ============================================================================
# MAGIC LINK
# ============================================================================

@auth_bp.route('/api/auth/magic-link', methods=['POST'])
@email_limit
def api_magic_link():
    data = get_json_body()
    email = (data.get('email') or '').strip().lower()
    is_valid, error = validate_email(email)
    if not is_valid:
        raise ValidationError(error)

    email_service = get_extension('email_service')
    with get_db_session() as db:
        token = UsersRepository(db).create_magic_link(email)
        result = email_service.send_magic_link(email, token.token)
        if not result.get('success'):
            logger.error(f"Magic link email to {email} failed: {result.get('error')}")
            raise ServiceError("Failed to send sign-in link. Please try again.", status_code=500)
        user = UsersRepository(db).get_user_by_email(email)
        log_email(db, email, 'MAGIC_LINK', "Sign in to WMX Services", result, user.id if user else None)

    return jsonify({'success': True, 'message': 'Check your email for a sign-in link'})


@auth_bp.route('/api/auth/magic-link/callback', methods=['GET'])
def magic_link_callback():
    try:
        with get_db_session() as db:
            user, created = UsersRepository(db).consume_magic_link(request.args.get('token'))
            sign_in(user, created)
            target = dashboard_path(user)
    except ServiceError as e:
        logger.info(f"Magic link rejected: {e.message}")
        return app_redirect('/auth/signin', error='Verification')

    return app_redirect(target)
