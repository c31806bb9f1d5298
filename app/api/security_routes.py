"""
Security Routes Blueprint

Admin view of the security monitor (stats, events, IP block list) and the
CSRF token endpoint.
"""

from flask import Blueprint, request, jsonify, current_app
import logging

from auth import admin_required
from app.utils.helpers import get_json_body, get_extension, get_current_user
from services.csrf import HEADER_NAME, csrf_enabled, issue_token
from services.errors import ServiceUnavailable, ValidationError
from services.rate_limiter import admin_limit, reset_rate_limits
from validators import parse_datetime, parse_int, validate_choice

logger = logging.getLogger(__name__)

security_bp = Blueprint('security', __name__)

GET_ACTIONS = ('stats', 'events')
POST_ACTIONS = ('blockIP', 'unblockIP', 'resetRateLimit')


def get_monitor():
    monitor = get_extension('security_monitor')
    if monitor is None:
        raise ServiceUnavailable("Security monitoring is disabled")
    return monitor


@security_bp.route('/api/admin/security', methods=['GET'])
@admin_limit
@admin_required
def security_overview():
    """?action=stats (default) or ?action=events with type/severity/ip/userId/start/end/limit"""
    action = validate_choice(request.args.get('action', 'stats'), GET_ACTIONS, 'action')
    monitor = get_monitor()

    if action == 'stats':
        return jsonify({'success': True, 'stats': monitor.get_stats()})

    events = monitor.get_events(
        event_type=request.args.get('type'),
        severity=request.args.get('severity'),
        ip=request.args.get('ip'),
        user_id=request.args.get('userId'),
        start=parse_datetime(request.args.get('start'), 'start'),
        end=parse_datetime(request.args.get('end'), 'end'),
        limit=parse_int(request.args.get('limit'), 'limit', default=100, min_value=1, max_value=1000)
    )
    return jsonify({'success': True, 'events': events, 'count': len(events)})


@security_bp.route('/api/admin/security', methods=['POST'])
@admin_limit
@admin_required
def security_action():
    data = get_json_body()
    action = validate_choice(data.get('action'), POST_ACTIONS, 'action')
    admin = get_current_user()

    if action == 'resetRateLimit':
        if not current_app.config.get('RATELIMIT_ENABLED'):
            raise ServiceUnavailable("Rate limiting is disabled")
        reset_rate_limits()
        logger.info(f"Admin {admin['id']} reset all rate limit counters")
        return jsonify({'success': True, 'message': 'Rate limits have been reset'})

    ip = (data.get('ip') or '').strip()
    if not ip:
        raise ValidationError("IP address is required")

    monitor = get_monitor()
    if action == 'blockIP':
        reason = data.get('reason') or f"Blocked by admin {admin['email']}"
        if not monitor.block_ip(ip, reason):
            raise ValidationError("This IP address cannot be blocked")
        logger.warning(f"Admin {admin['id']} blocked IP {ip}")
        return jsonify({'success': True, 'message': f"IP {ip} has been blocked"})

    monitor.unblock_ip(ip)
    logger.info(f"Admin {admin['id']} unblocked IP {ip}")
    return jsonify({'success': True, 'message': f"IP {ip} has been unblocked"})


@security_bp.route('/api/csrf', methods=['GET'])
def get_csrf_token():
    """Issue a token signed for this browser session"""
    if not csrf_enabled():
        return jsonify({'success': True, 'csrfToken': None, 'enabled': False})

    return jsonify({'success': True, 'csrfToken': issue_token(), 'headerName': HEADER_NAME,
                    'expiresIn': current_app.config['WTF_CSRF_TIME_LIMIT']})
