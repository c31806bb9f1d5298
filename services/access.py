"""
Ownership checks shared by services.

A CLIENT may only touch rows that belong to them; an ADMIN may touch
anything. Every helper takes the acting user as the plain dict produced by
auth.get_current_user().
"""

from database.models import Project, Invoice
from services.errors import AuthenticationError, NotFoundError, PermissionDenied

ROLE_ADMIN = 'ADMIN'


def is_admin(user):
    return bool(user) and user.get('role') == ROLE_ADMIN


def require_user(user):
    if not user or not user.get('id'):
        raise AuthenticationError("Authentication required")
    return user


def require_admin(user):
    require_user(user)
    if not is_admin(user):
        raise PermissionDenied("Admin permission required")
    return user


def ensure_owner(user, owner_id, message="You do not have access to this resource"):
    require_user(user)
    if not is_admin(user) and owner_id != user['id']:
        raise PermissionDenied(message)


def get_project_for_user(session, project_id, user):
    """Load a project the user may see; 404 when missing, 403 when foreign."""
    require_user(user)
    project = session.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise NotFoundError("Project not found")
    ensure_owner(user, project.client_id, "You do not have access to this project")
    return project


def get_invoice_for_user(session, invoice_id, user):
    require_user(user)
    invoice = session.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise NotFoundError("Invoice not found")
    ensure_owner(user, invoice.client_id, "You do not have access to this invoice")
    return invoice
