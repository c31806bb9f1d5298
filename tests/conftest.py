"""
Pytest configuration and shared fixtures
"""
import sys
import uuid
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from services.errors import IntegrationError  # noqa: E402


# ============================================================================
# FAKE INTEGRATIONS
# ============================================================================

class FakeEmailClient:
    """Stands in for ResendClient; records every send."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, sender, to, subject, html, reply_to=None):
        if self.fail:
            raise IntegrationError("Email delivery failed (500)")
        self.sent.append({'from': sender, 'to': to, 'subject': subject, 'html': html})
        return {'id': f"email-{len(self.sent)}"}

    def subjects(self):
        return [email['subject'] for email in self.sent]


class FakeGateway:
    """Stands in for MidtransClient."""

    def __init__(self):
        self.transactions = []
        self.statuses = {}
        self.status_calls = []

    def create_transaction(self, payload):
        self.transactions.append(payload)
        order_id = payload['transaction_details']['order_id']
        return {'token': f"snap-{order_id}", 'redirect_url': f"https://pay.test/{order_id}"}

    def get_status(self, order_id):
        self.status_calls.append(order_id)
        return self.statuses.get(order_id, {'transaction_status': 'pending'})


class FakeStorage:
    """Stands in for StorageService."""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_deletes = False

    def public_url_for(self, key):
        return f"https://cdn.test/{key}"

    def upload(self, key, content, content_type, metadata=None):
        self.objects[key] = {'content': content, 'type': content_type, 'metadata': metadata or {}}
        return {'key': key, 'url': self.public_url_for(key), 'size': len(content), 'type': content_type}

    def delete(self, key):
        if self.fail_deletes:
            raise IntegrationError("Failed to delete file")
        self.objects.pop(key, None)
        self.deleted.append(key)
        return True

    def presign_upload(self, key, content_type):
        return {'uploadUrl': f"https://upload.test/{key}", 'key': key,
                'publicUrl': self.public_url_for(key), 'expiresIn': 3600}


# ============================================================================
# APP & CLIENT
# ============================================================================

@pytest.fixture
def app_config():
    """Fixture providing test configuration"""
    from config import TestingConfig
    return TestingConfig


@pytest.fixture
def app_overrides():
    """Config values applied on top of app_config; override per module or class"""
    return {}


@pytest.fixture
def email_client():
    return FakeEmailClient()


@pytest.fixture
def email_service(email_client):
    from services.email_service import EmailService
    return EmailService(enabled=True, app_url='http://localhost:5000', client=email_client)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def app(app_config, app_overrides, email_service, gateway, storage):
    """Flask app on a fresh in-memory database with fake integrations"""
    from app_init import create_app
    from database.connection import drop_db
    from services.email_queue import EmailQueue

    app = create_app(app_config, **app_overrides)
    app.extensions['email_service'] = email_service
    app.extensions['email_queue'] = EmailQueue(email_service)
    app.extensions['payment_gateway'] = gateway
    app.extensions['storage'] = storage

    yield app

    drop_db()


@pytest.fixture
def client(app):
    return app.test_client()


# ============================================================================
# DATA FACTORIES
# ============================================================================

@pytest.fixture
def make_user(app):
    """Create a committed user; returns the detached model"""
    from auth import safe_generate_password_hash
    from database.connection import get_db_session
    from database.models import User

    def factory(email=None, role='CLIENT', password='password123', is_active=True, **fields):
        with get_db_session() as db:
            user = User(
                email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
                name=fields.pop('name', 'Test User'),
                password_hash=safe_generate_password_hash(password),
                role=role,
                is_active=is_active,
                email_verified=fields.pop('email_verified', datetime.utcnow() if is_active else None),
                **fields
            )
            db.add(user)
        return user

    return factory


@pytest.fixture
def make_project(app):
    from database.connection import get_db_session
    from database.models import Project

    def factory(client_user, title='Company Website', **fields):
        with get_db_session() as db:
            project = Project(client_id=client_user.id, title=title, **fields)
            db.add(project)
        return project

    return factory


@pytest.fixture
def make_invoice(app):
    from database.connection import get_db_session
    from database.models import Invoice

    def factory(project, number=None, amount=1500000.0, status='PENDING', due_in_days=14, **fields):
        with get_db_session() as db:
            invoice = Invoice(
                number=number or f"INV-{uuid.uuid4().hex[:6].upper()}",
                project_id=project.id,
                client_id=project.client_id,
                amount=amount,
                currency='IDR',
                status=status,
                due_date=datetime.utcnow() + timedelta(days=due_in_days),
                **fields
            )
            db.add(invoice)
        return invoice

    return factory


@pytest.fixture
def client_user(make_user):
    return make_user(email='client@example.com', name='Client One')


@pytest.fixture
def admin_user(make_user):
    return make_user(email='admin@example.com', name='Agency Admin', role='ADMIN')


@pytest.fixture
def login():
    """Put a user in a test client's session"""
    def _login(test_client, user):
        with test_client.session_transaction() as sess:
            sess['user_id'] = user.id
            sess['user_email'] = user.email
            sess['user_name'] = user.name
            sess['user_role'] = user.role
    return _login


@pytest.fixture
def as_user():
    """The session dict services receive as the acting user"""
    return lambda user: {'id': user.id, 'email': user.email, 'name': user.name, 'role': user.role}


@pytest.fixture
def sample_file_data():
    """Fixture providing sample file upload data"""
    return {
        'valid_image_name': 'logo.png',
        'valid_pdf_name': 'brief.pdf',
        'invalid_name': 'malicious.exe',
        'path_traversal_name': '../../../etc/passwd'
    }
