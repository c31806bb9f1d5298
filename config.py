"""
Centralized Configuration for WMX Services
Manages environment-specific settings, secrets, and integration credentials.
"""
import os
from datetime import timedelta


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() == 'true'


class Config:
    """Base configuration with defaults"""

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.urandom(32).hex()
    MAX_CONTENT_LENGTH = 12 * 1024 * 1024  # 12MB, largest upload cap plus multipart overhead

    # Public base URL used in emails and payment callbacks
    APP_URL = os.environ.get('APP_URL', 'http://localhost:5000')

    # CORS Settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
    CORS_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Requested-With', 'X-CSRF-Token']

    # Database Settings
    DATABASE_URL = os.environ.get('DATABASE_URL', 'postgresql://localhost/wmx_services')

    # Payment gateway (Midtrans)
    MIDTRANS_SERVER_KEY = os.environ.get('MIDTRANS_SERVER_KEY')
    MIDTRANS_CLIENT_KEY = os.environ.get('MIDTRANS_CLIENT_KEY')
    MIDTRANS_IS_PRODUCTION = _env_flag('MIDTRANS_IS_PRODUCTION')
    PAYMENT_CURRENCY = os.environ.get('PAYMENT_CURRENCY', 'IDR')

    # Object storage (Cloudflare R2, S3 compatible)
    R2_ACCOUNT_ID = os.environ.get('R2_ACCOUNT_ID')
    R2_ACCESS_KEY_ID = os.environ.get('R2_ACCESS_KEY_ID')
    R2_SECRET_ACCESS_KEY = os.environ.get('R2_SECRET_ACCESS_KEY')
    R2_BUCKET_NAME = os.environ.get('R2_BUCKET_NAME', 'wmx-services')
    R2_PUBLIC_URL = os.environ.get('R2_PUBLIC_URL')
    PRESIGNED_URL_EXPIRES = 3600  # seconds

    # Email (Resend)
    RESEND_API_KEY = os.environ.get('RESEND_API_KEY')
    EMAIL_FROM = os.environ.get('EMAIL_FROM', 'WMX Services <noreply@wmx-services.dev>')
    EMAIL_ENABLED = _env_flag('EMAIL_ENABLED')
    EMAIL_TIMEOUT = int(os.environ.get('EMAIL_TIMEOUT', '15'))  # seconds

    # OAuth (Google)
    GOOGLE_CLIENT_ID = os.environ.get('GOOGLE_CLIENT_ID')
    GOOGLE_CLIENT_SECRET = os.environ.get('GOOGLE_CLIENT_SECRET')

    # Cron endpoints
    CRON_SECRET = os.environ.get('CRON_SECRET')

    # Rate Limiting (Flask-Limiter)
    RATELIMIT_ENABLED = _env_flag('RATELIMIT_ENABLED', 'true')
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL', 'memory://')
    RATELIMIT_HEADER_LIMIT = 'RateLimit-Limit'
    RATELIMIT_HEADER_REMAINING = 'RateLimit-Remaining'
    RATELIMIT_HEADER_RESET = 'RateLimit-Reset'

    # CSRF protection for browser-originated mutations (Flask-WTF)
    WTF_CSRF_ENABLED = _env_flag('CSRF_ENABLED', 'true')
    WTF_CSRF_TIME_LIMIT = 60 * 60
    WTF_CSRF_HEADERS = ['X-CSRF-Token']

    # Security monitoring of incoming requests
    SECURITY_MONITOR_ENABLED = _env_flag('SECURITY_MONITOR_ENABLED', 'true')

    # Background tasks: 'thread' or 'inline'
    BACKGROUND_TASKS_MODE = os.environ.get('BACKGROUND_TASKS_MODE', 'thread')
    BACKGROUND_TASKS_WORKERS = int(os.environ.get('BACKGROUND_TASKS_WORKERS', '4'))

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_FILE = os.environ.get('LOG_FILE', 'app.log')

    # Session Configuration
    SESSION_PERMANENT = False
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'
    # Allow all CORS in development
    CORS_ORIGINS = ['*']
    BACKGROUND_TASKS_MODE = 'inline'


class ProductionConfig(Config):
    """Production-specific configuration"""
    DEBUG = False
    TESTING = False
    # Strict CORS in production
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'https://wmx-services.dev').split(',')
    # Force HTTPS
    PREFERRED_URL_SCHEME = 'https'
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class TestingConfig(Config):
    """Testing-specific configuration"""
    DEBUG = True
    TESTING = True
    DATABASE_URL = 'sqlite://'
    APP_URL = 'http://localhost:5000'
    SECRET_KEY = 'test-secret-key-minimum-32-chars-long-for-security'
    MIDTRANS_SERVER_KEY = 'SB-Mid-server-test-key'
    MIDTRANS_CLIENT_KEY = 'SB-Mid-client-test-key'
    RESEND_API_KEY = 're_test_key'
    EMAIL_ENABLED = True
    CRON_SECRET = 'test-cron-secret'
    # Disable request-level guards in tests; they are exercised directly
    RATELIMIT_ENABLED = False
    WTF_CSRF_ENABLED = False
    SECURITY_MONITOR_ENABLED = False
    BACKGROUND_TASKS_MODE = 'inline'
    LOG_FILE = 'test.log'


# Configuration selector
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_config():
    """Get configuration based on FLASK_ENV environment variable"""
    env = os.environ.get('FLASK_ENV', 'development')
    return config_by_name.get(env, DevelopmentConfig)


def is_production():
    return os.environ.get('FLASK_ENV', 'development') == 'production'
