"""
RPC procedures grouped into named routers.

A procedure is a query or a mutation with an access level:

- ``public``: anyone
- ``protected``: any signed-in user
- ``admin``: ADMIN role only

Handlers are plain functions ``handler(ctx, input)``; ``input`` is always a
dict that has passed the procedure's schema (see validators.validate_input),
so ids are strings and declared fields have their declared types. The access
check runs before the input check, and the handler's service still enforces
row ownership.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional

from services.access import require_admin, require_user
from services.errors import NotFoundError, ServiceError
from validators import validate_input

logger = logging.getLogger(__name__)

PUBLIC = 'public'
PROTECTED = 'protected'
ADMIN = 'admin'

QUERY = 'query'
MUTATION = 'mutation'


class Context:
    """Everything a handler may need for one call."""

    def __init__(self, session, user: Optional[Dict] = None, tasks=None, extensions: Dict = None):
        self.session = session
        self.user = user
        self.tasks = tasks
        self.extensions = extensions or {}

    @property
    def email_service(self):
        return self.extensions.get('email_service')

    @property
    def storage(self):
        return self.extensions.get('storage')


class Procedure:

    def __init__(self, path: str, kind: str, access: str, handler: Callable, schema: Dict = None):
        self.path = path
        self.kind = kind
        self.access = access
        self.handler = handler
        self.schema = schema or {}

    def check_access(self, user: Optional[Dict]):
        if self.access == PROTECTED:
            require_user(user)
        elif self.access == ADMIN:
            require_admin(user)

    def __call__(self, ctx: Context, input: Any = None) -> Any:
        self.check_access(ctx.user)
        return self.handler(ctx, validate_input(input, self.schema))


class Router:

    def __init__(self, name: str):
        self.name = name
        self.procedures: Dict[str, Procedure] = {}

    def _register(self, kind: str, name: str, access: str, schema: Dict = None):
        def decorator(handler):
            self.procedures[name] = Procedure(f"{self.name}.{name}", kind, access, handler, schema)
            return handler
        return decorator

    def query(self, name: str, access: str = PROTECTED, schema: Dict = None):
        return self._register(QUERY, name, access, schema)

    def mutation(self, name: str, access: str = PROTECTED, schema: Dict = None):
        return self._register(MUTATION, name, access, schema)


class RouterRegistry:
    """Resolves ``router.procedure`` paths."""

    def __init__(self, routers: Iterable[Router]):
        self.routers = {router.name: router for router in routers}

    def resolve(self, path: str) -> Procedure:
        router_name, _, procedure_name = (path or '').partition('.')
        router = self.routers.get(router_name)
        procedure = router.procedures.get(procedure_name) if router else None
        if procedure is None:
            raise NotFoundError(f"No procedure found on path \"{path}\"")
        return procedure

    def call(self, path: str, ctx: Context, input: Any = None, method: str = 'POST') -> Any:
        procedure = self.resolve(path)
        if procedure.kind == MUTATION and method.upper() != 'POST':
            raise ServiceError(f"Mutation \"{path}\" must be called with POST", status_code=405)
        logger.debug(f"RPC {procedure.kind} {path} by {ctx.user['id'] if ctx.user else 'anonymous'}")
        return procedure(ctx, input)

    def paths(self):
        return sorted(
            procedure.path
            for router in self.routers.values()
            for procedure in router.procedures.values()
        )
