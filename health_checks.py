"""
Health Check & Monitoring Endpoints
Provides endpoints for deployment health checks and monitoring
"""
import os
import sys
import time
import psutil
from datetime import datetime
from typing import Dict, Any
from flask import Blueprint, jsonify, current_app
import logging

from database.connection import check_db_connection

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__)

# Track application start time
START_TIME = time.time()

SERVICE_NAME = 'wmx-services'
SERVICE_VERSION = '1.0.0'


def get_system_metrics() -> Dict[str, Any]:
    """
    Get basic process metrics

    Returns:
        Dictionary of system metrics
    """
    try:
        process = psutil.Process()

        return {
            'cpu_percent': process.cpu_percent(interval=0.1),
            'memory_mb': round(process.memory_info().rss / 1024 / 1024, 2),
            'memory_percent': round(process.memory_percent(), 2),
            'threads': process.num_threads(),
        }
    except (psutil.Error, OSError) as e:
        logger.warning(f"Failed to get system metrics: {e}")
        return {}


def get_uptime() -> Dict[str, Any]:
    uptime_seconds = time.time() - START_TIME

    return {
        'uptime_seconds': round(uptime_seconds, 2),
        'uptime_minutes': round(uptime_seconds / 60, 2),
        'uptime_hours': round(uptime_seconds / 3600, 2),
        'started_at': datetime.fromtimestamp(START_TIME).isoformat()
    }


def check_integrations(app) -> Dict[str, bool]:
    """
    Check which third-party integrations are configured

    Args:
        app: Flask application instance

    Returns:
        Dictionary of integration availability
    """
    email_service = app.extensions.get('email_service')
    return {
        'payment_gateway': app.extensions.get('payment_gateway') is not None,
        'object_storage': app.extensions.get('storage') is not None,
        'email': bool(email_service and email_service.enabled),
        'google_oauth': bool(app.config.get('GOOGLE_CLIENT_ID') and app.config.get('GOOGLE_CLIENT_SECRET')),
    }


def check_database() -> Dict[str, Any]:
    try:
        check_db_connection()
        return {'healthy': True}
    except RuntimeError as e:
        return {'healthy': False, 'error': str(e)}


def check_filesystem() -> Dict[str, Any]:
    """Log directory must exist and be writable."""
    dir_path = os.path.join(os.getcwd(), 'logs')
    exists = os.path.exists(dir_path)
    writable = os.access(dir_path, os.W_OK) if exists else False
    return {'logs': {'exists': exists, 'writable': writable, 'healthy': exists and writable}}


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Basic health check endpoint
    Returns 200 if application is running
    """
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'service': SERVICE_NAME
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness_check():
    """
    Readiness check endpoint
    Returns 200 when the database answers and logs can be written
    """
    database = check_database()
    filesystem = check_filesystem()
    filesystem_healthy = all(status['healthy'] for status in filesystem.values())
    is_ready = database['healthy'] and filesystem_healthy

    response = {
        'status': 'ready' if is_ready else 'not_ready',
        'timestamp': datetime.utcnow().isoformat(),
        'checks': {
            'database': database,
            'integrations': check_integrations(current_app),
            'filesystem': filesystem,
            'filesystem_healthy': filesystem_healthy
        }
    }
    if not is_ready:
        logger.warning(f"Readiness check failed: database={database}, filesystem={filesystem}")

    return jsonify(response), 200 if is_ready else 503


@health_bp.route('/metrics', methods=['GET'])
def metrics():
    """
    Basic metrics endpoint
    Returns process metrics, queue sizes and integration status
    """
    email_queue = current_app.extensions.get('email_queue')
    monitor = current_app.extensions.get('security_monitor')

    response = {
        'timestamp': datetime.utcnow().isoformat(),
        'service': SERVICE_NAME,
        'version': SERVICE_VERSION,
        'environment': os.environ.get('FLASK_ENV', 'production'),
        'uptime': get_uptime(),
        'system': get_system_metrics(),
        'integrations': check_integrations(current_app),
        'email_queue': email_queue.status() if email_queue else None,
        'blocked_ips': len(monitor.store.blocked_ips) if monitor else None,
        'python_version': sys.version.split()[0]
    }

    return jsonify(response), 200


@health_bp.route('/ping', methods=['GET'])
def ping():
    return 'pong', 200


def register_health_checks(app):
    """
    Register health check blueprint with Flask app

    Args:
        app: Flask application instance
    """
    app.register_blueprint(health_bp, url_prefix='/api')
    logger.info("Health check endpoints registered")
    logger.info("Available endpoints: /api/health, /api/ready, /api/metrics, /api/ping")
