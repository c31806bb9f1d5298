"""
SQLAlchemy models for WMX Services.
Defines the client portal tables: users, projects, billing, chat, content and logs.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime,
    ForeignKey, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from database.connection import Base


def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


# Enumerations kept as plain strings in the database
ROLES = ('ADMIN', 'CLIENT')
PROJECT_STATUSES = ('PLANNING', 'IN_PROGRESS', 'REVIEW', 'COMPLETED')
MILESTONE_STATUSES = ('PENDING', 'IN_PROGRESS', 'COMPLETED')
INVOICE_STATUSES = ('DRAFT', 'PENDING', 'PAID', 'OVERDUE', 'CANCELLED')
PAYMENT_STATUSES = ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED', 'REFUNDED')
NOTIFICATION_TYPES = ('INFO', 'SUCCESS', 'WARNING', 'ERROR', 'PROJECT_UPDATE', 'MESSAGE', 'PAYMENT', 'SYSTEM')
EMAIL_LOG_TYPES = (
    'WELCOME', 'VERIFICATION', 'PASSWORD_RESET', 'MAGIC_LINK', 'PROJECT_STATUS', 'CHAT_MESSAGE',
    'INVOICE_CREATED', 'INVOICE_REMINDER', 'INVOICE_OVERDUE', 'PAYMENT_CONFIRMATION'
)


# =============================================================================
# USERS & AUTHENTICATION
# =============================================================================

class User(Base):
    """Portal users. Clients sign up or arrive through OAuth; admins are promoted."""
    __tablename__ = 'users'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))
    image = Column(String(1024))
    password_hash = Column(String(255))
    role = Column(String(20), nullable=False, default='CLIENT')
    is_active = Column(Boolean, default=True)
    email_verified = Column(DateTime)
    last_active_at = Column(DateTime)

    # Email preferences
    email_notifications = Column(Boolean, default=True)
    email_invoices = Column(Boolean, default=True)
    email_project_updates = Column(Boolean, default=True)
    email_chat_messages = Column(Boolean, default=True)
    email_marketing = Column(Boolean, default=False)
    unsubscribe_token = Column(String(64), unique=True, default=lambda: uuid.uuid4().hex)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    projects = relationship("Project", back_populates="client", cascade="all, delete-orphan")
    verifications = relationship("EmailVerification", back_populates="user", cascade="all, delete-orphan")
    reset_tokens = relationship("PasswordResetToken", back_populates="user", cascade="all, delete-orphan")
    portfolio_images = relationship("PortfolioImage", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_users_role', 'role'),
    )

    @property
    def is_admin(self):
        return self.role == 'ADMIN'

    def preferences(self):
        return {
            'emailNotifications': self.email_notifications,
            'emailInvoices': self.email_invoices,
            'emailProjectUpdates': self.email_project_updates,
            'emailChatMessages': self.email_chat_messages,
            'emailMarketing': self.email_marketing,
        }

    def to_dict(self, include_sensitive=False):
        data = {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'image': self.image,
            'role': self.role,
            'is_active': self.is_active,
            'email_verified': _iso(self.email_verified),
            'last_active_at': _iso(self.last_active_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_sensitive:
            data['password_hash'] = self.password_hash
            data['unsubscribe_token'] = self.unsubscribe_token
        return data


class EmailVerification(Base):
    """Six digit signup codes."""
    __tablename__ = 'email_verifications'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="verifications")

    __table_args__ = (
        Index('ix_email_verifications_user', 'user_id'),
    )


class PasswordResetToken(Base):
    __tablename__ = 'password_reset_tokens'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    token = Column(String(128), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="reset_tokens")


class MagicLinkToken(Base):
    __tablename__ = 'magic_link_tokens'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False)
    token = Column(String(128), unique=True, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# PROJECTS & MILESTONES
# =============================================================================

class Project(Base):
    """Client projects tracked by the agency."""
    __tablename__ = 'projects'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    client_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(20), nullable=False, default='PLANNING')
    progress = Column(Integer, nullable=False, default=0)
    budget = Column(Float)
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    deadline = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("User", back_populates="projects")
    milestones = relationship("Milestone", back_populates="project", cascade="all, delete-orphan",
                              order_by="Milestone.order")
    invoices = relationship("Invoice", back_populates="project", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="project", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_projects_client', 'client_id'),
        Index('ix_projects_status', 'status'),
    )

    def to_dict(self, include_milestones=False, include_client=False):
        data = {
            'id': self.id,
            'client_id': self.client_id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'progress': self.progress,
            'budget': self.budget,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'deadline': _iso(self.deadline),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_milestones:
            data['milestones'] = [m.to_dict() for m in self.milestones]
        if include_client and self.client:
            data['client'] = {'id': self.client.id, 'name': self.client.name, 'email': self.client.email}
        return data


class Milestone(Base):
    __tablename__ = 'milestones'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    project_id = Column(String(36), ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(20), nullable=False, default='PENDING')
    order = Column(Integer, nullable=False, default=0)
    due_date = Column(DateTime)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="milestones")

    __table_args__ = (
        Index('ix_milestones_project', 'project_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'order': self.order,
            'due_date': _iso(self.due_date),
            'completed_at': _iso(self.completed_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# BILLING
# =============================================================================

class Invoice(Base):
    __tablename__ = 'invoices'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    number = Column(String(50), unique=True, nullable=False)
    project_id = Column(String(36), ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    client_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(10), nullable=False, default='IDR')
    status = Column(String(20), nullable=False, default='PENDING')
    description = Column(Text)
    items = Column(JSON, default=list)
    due_date = Column(DateTime, nullable=False)
    paid_at = Column(DateTime)
    last_reminder_sent = Column(DateTime)
    reminder_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="invoices")
    client = relationship("User")
    payments = relationship("Payment", back_populates="invoice", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_invoices_client', 'client_id'),
        Index('ix_invoices_status', 'status'),
        Index('ix_invoices_due_date', 'due_date'),
    )

    def to_dict(self, include_project=False, include_payments=False):
        data = {
            'id': self.id,
            'number': self.number,
            'project_id': self.project_id,
            'client_id': self.client_id,
            'amount': self.amount,
            'currency': self.currency,
            'status': self.status,
            'description': self.description,
            'items': self.items or [],
            'due_date': _iso(self.due_date),
            'paid_at': _iso(self.paid_at),
            'last_reminder_sent': _iso(self.last_reminder_sent),
            'reminder_count': self.reminder_count,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_project and self.project:
            data['project'] = {'id': self.project.id, 'title': self.project.title}
        if include_payments:
            data['payments'] = [p.to_dict() for p in self.payments]
        return data


class Payment(Base):
    """A gateway transaction attempt for an invoice."""
    __tablename__ = 'payments'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    invoice_id = Column(String(36), ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    amount = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default='PENDING')
    midtrans_order_id = Column(String(100), unique=True)
    midtrans_token = Column(String(255))
    payment_method = Column(String(50))
    transaction_id = Column(String(100))
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    invoice = relationship("Invoice", back_populates="payments")
    user = relationship("User")

    __table_args__ = (
        Index('ix_payments_invoice', 'invoice_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'invoice_id': self.invoice_id,
            'user_id': self.user_id,
            'amount': self.amount,
            'status': self.status,
            'order_id': self.midtrans_order_id,
            'payment_method': self.payment_method,
            'transaction_id': self.transaction_id,
            'paid_at': _iso(self.paid_at),
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# CHAT
# =============================================================================

class Message(Base):
    __tablename__ = 'messages'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    project_id = Column(String(36), ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    sender_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    receiver_id = Column(String(36), ForeignKey('users.id', ondelete='SET NULL'))
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    edited_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])
    attachments = relationship("Attachment", back_populates="message", cascade="all, delete-orphan")
    read_by = relationship("MessageReadBy", back_populates="message", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_messages_project_created', 'project_id', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'sender_id': self.sender_id,
            'receiver_id': self.receiver_id,
            'content': self.content,
            'is_read': self.is_read,
            'edited_at': _iso(self.edited_at),
            'created_at': _iso(self.created_at),
            'sender': {
                'id': self.sender.id, 'name': self.sender.name, 'role': self.sender.role
            } if self.sender else None,
            'attachments': [a.to_dict() for a in self.attachments]
        }


class Attachment(Base):
    __tablename__ = 'attachments'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    message_id = Column(String(36), ForeignKey('messages.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(255), nullable=False)
    url = Column(String(1024), nullable=False)
    key = Column(String(1024))
    size = Column(Integer, default=0)
    mime_type = Column(String(100))
    created_at = Column(DateTime, default=datetime.utcnow)

    message = relationship("Message", back_populates="attachments")

    def to_dict(self):
        return {
            'id': self.id,
            'message_id': self.message_id,
            'name': self.name,
            'url': self.url,
            'key': self.key,
            'size': self.size,
            'mime_type': self.mime_type,
            'created_at': _iso(self.created_at)
        }


class MessageReadBy(Base):
    __tablename__ = 'message_read_by'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    message_id = Column(String(36), ForeignKey('messages.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    read_at = Column(DateTime, default=datetime.utcnow)

    message = relationship("Message", back_populates="read_by")

    __table_args__ = (
        UniqueConstraint('message_id', 'user_id', name='uq_message_read_by'),
    )


# =============================================================================
# CONTENT: PORTFOLIO & SERVICES
# =============================================================================

class PortfolioItem(Base):
    """Public marketing portfolio entries managed by admins."""
    __tablename__ = 'portfolio_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    category = Column(String(100))
    image_url = Column(String(1024))
    project_url = Column(String(1024))
    technologies = Column(JSON, default=list)
    featured = Column(Boolean, default=False, nullable=False)
    order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'image_url': self.image_url,
            'project_url': self.project_url,
            'technologies': self.technologies or [],
            'featured': self.featured,
            'order': self.order,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class PortfolioImage(Base):
    """Per-user uploaded gallery images."""
    __tablename__ = 'portfolio_images'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    url = Column(String(1024), nullable=False)
    key = Column(String(1024), nullable=False)
    name = Column(String(255), nullable=False)
    file_name = Column(String(255))
    size = Column(Integer, default=0)
    type = Column(String(100))
    order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="portfolio_images")

    __table_args__ = (
        Index('ix_portfolio_images_user', 'user_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'url': self.url,
            'key': self.key,
            'name': self.name,
            'file_name': self.file_name,
            'size': self.size,
            'type': self.type,
            'order': self.order,
            'created_at': _iso(self.created_at)
        }


class Service(Base):
    """Service offerings listed on the marketing site."""
    __tablename__ = 'services'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    icon = Column(String(100))
    features = Column(JSON, default=list)
    price = Column(String(100))
    is_visible = Column(Boolean, default=True, nullable=False)
    order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'icon': self.icon,
            'features': self.features or [],
            'price': self.price,
            'is_visible': self.is_visible,
            'order': self.order,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# NOTIFICATIONS & LOGS
# =============================================================================

class Notification(Base):
    """In-app notifications for a single user."""
    __tablename__ = 'notifications'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text)
    type = Column(String(30), nullable=False, default='INFO')
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime)
    entity_type = Column(String(50))
    entity_id = Column(String(36))
    action_url = Column(String(1024))
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="notifications")

    __table_args__ = (
        Index('ix_notifications_user', 'user_id'),
        Index('ix_notifications_is_read', 'is_read'),
        Index('ix_notifications_created_at', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'is_read': self.is_read,
            'read_at': _iso(self.read_at),
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'action_url': self.action_url,
            'created_at': _iso(self.created_at)
        }


class ActivityLog(Base):
    """
    Append-only audit trail of project and account activity.
    """
    __tablename__ = 'activity_logs'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='SET NULL'))
    project_id = Column(String(36), ForeignKey('projects.id', ondelete='SET NULL'))
    type = Column(String(50), nullable=False)
    description = Column(Text)
    extra_data = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")
    project = relationship("Project")

    __table_args__ = (
        Index('ix_activity_logs_user', 'user_id'),
        Index('ix_activity_logs_project', 'project_id'),
        Index('ix_activity_logs_created_at', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'project_id': self.project_id,
            'type': self.type,
            'description': self.description,
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at),
            'user': {'id': self.user.id, 'name': self.user.name} if self.user else None,
            'project': {'id': self.project.id, 'title': self.project.title} if self.project else None
        }


class EmailLog(Base):
    """Delivery history for transactional email."""
    __tablename__ = 'email_logs'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='SET NULL'))
    email = Column(String(255), nullable=False)
    type = Column(String(30), nullable=False)
    subject = Column(String(255))
    status = Column(String(20), nullable=False, default='SENT')
    error = Column(Text)
    sent_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_email_logs_user', 'user_id'),
        Index('ix_email_logs_sent_at', 'sent_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'email': self.email,
            'type': self.type,
            'subject': self.subject,
            'status': self.status,
            'error': self.error,
            'sent_at': _iso(self.sent_at)
        }
