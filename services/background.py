"""
Background Tasks - explicit fire-and-forget side effects.

Routes register best-effort work (emails, admin alerts) on a per-request
BackgroundTasks collector. The collector runs after the request's database
transaction has committed: inline when no executor is configured (tests,
development) or on a shared thread pool in production.

Failure contract: a failing task is logged and recorded on the collector's
``failures`` list. It is never retried and never fails the request.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Collects callables during a request and runs them afterwards."""

    def __init__(self, executor: Optional[ThreadPoolExecutor] = None):
        self.executor = executor
        self.pending: List[Dict[str, Any]] = []
        self.completed: List[str] = []
        self.failures: List[Dict[str, Any]] = []

    def add(self, name: str, func: Callable, *args, **kwargs):
        """Register a task; nothing runs until run() is called."""
        self.pending.append({'name': name, 'func': func, 'args': args, 'kwargs': kwargs})
        logger.debug(f"Background task registered: {name}")

    def run(self):
        """Run (or submit) every pending task exactly once."""
        tasks, self.pending = self.pending, []
        for task in tasks:
            if self.executor is not None:
                self.executor.submit(self._safe_call, task)
            else:
                self._safe_call(task)

    def discard(self):
        """Drop pending tasks; used when the request's transaction rolled back."""
        if self.pending:
            logger.debug(f"Discarding {len(self.pending)} background task(s)")
        self.pending = []

    def _safe_call(self, task: Dict[str, Any]):
        try:
            task['func'](*task['args'], **task['kwargs'])
            self.completed.append(task['name'])
        except Exception as e:
            logger.error(f"Background task '{task['name']}' failed: {e}", exc_info=True)
            self.failures.append({
                'name': task['name'],
                'error': str(e),
                'failed_at': datetime.utcnow().isoformat()
            })


def in_session(func: Callable, *args, **kwargs):
    """Run ``func(session, *args, **kwargs)`` in its own unit of work.

    Tasks run after the request session is closed (and possibly on another
    thread), so anything that touches the database opens a fresh session.
    """
    from database.connection import get_db_session

    with get_db_session() as session:
        return func(session, *args, **kwargs)


def create_executor(app) -> Optional[ThreadPoolExecutor]:
    """Build the shared executor for the configured mode ('thread' or 'inline')."""
    if app.config.get('BACKGROUND_TASKS_MODE', 'thread') != 'thread':
        logger.info("Background tasks run inline")
        return None
    workers = app.config.get('BACKGROUND_TASKS_WORKERS', 4)
    logger.info(f"Background tasks run on a thread pool ({workers} workers)")
    return ThreadPoolExecutor(max_workers=workers, thread_name_prefix='wmx-bg')
