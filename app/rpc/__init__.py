"""
RPC Package

Domain routers exposing query/mutation procedures, served over HTTP by
app/api/rpc_routes.py at ``/api/rpc/<router>.<procedure>``.
"""

from app.rpc.router import Context, Router, RouterRegistry, PUBLIC, PROTECTED, ADMIN
from app.rpc import (
    activity,
    admin,
    chat,
    deadline,
    files,
    milestone,
    notification,
    payment,
    portfolio,
    preferences,
    project,
    search,
    services,
)

registry = RouterRegistry([
    project.router,
    milestone.router,
    payment.router,
    chat.router,
    services.router,
    notification.router,
    activity.router,
    preferences.router,
    admin.router,
    search.router,
    files.router,
    portfolio.router,
    deadline.router,
])

__all__ = ['Context', 'Router', 'RouterRegistry', 'registry', 'PUBLIC', 'PROTECTED', 'ADMIN']
