"""
API Blueprints Package

All HTTP route handlers for the application, organized by domain.
Each module defines a Flask Blueprint registered in app/__init__.py.

BLUEPRINT REFERENCE:
====================

- auth_routes.py      : Login, signup + email verification, password reset,
                        Google OAuth, magic links (/api/auth/*)
- payment_routes.py   : Invoice checkout, status checks, gateway webhook (/api/payment/*)
- upload_routes.py    : R2 uploads, presigned URLs, chat attachments (/api/upload*)
- portfolio_routes.py : Per-user portfolio gallery (/api/portfolio)
- security_routes.py  : Security monitor admin, CSRF tokens (/api/admin/security, /api/csrf)
- cron_routes.py      : Email queue drain, invoice reminders (/api/cron/*)
- rpc_routes.py       : HTTP transport for the app/rpc routers (/api/rpc/*)

Health endpoints live in health_checks.py at the project root.
"""

# All blueprints are imported and registered in app/__init__.py
# This file serves as documentation only

__all__ = []
