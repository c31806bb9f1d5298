"""
WMX Services Application

The Flask app is built by the factory in app_init.py:
- app/api/: HTTP blueprints (auth, payment, upload, portfolio, security, cron, rpc)
- app/rpc/: domain routers served at /api/rpc/<router>.<procedure>
- services/: business logic and integrations (Midtrans, R2, Resend)
- database/: SQLAlchemy models and session management

Run locally with ``flask --app application run`` or ``python application.py``.
"""
import os

from app_init import create_app

app = create_app()


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=app.debug)
