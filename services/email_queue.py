"""
Email Queue - low-volume in-process buffer of emails to send later.

Items are held by an injectable store. MemoryEmailQueueStore keeps them in
process memory, so a restart drops whatever is queued; a multi-instance
deployment would swap in a shared store with the same four methods.

The queue is drained by the cron endpoint (/api/cron/process-email-queue).
"""

import logging
import threading
import uuid
from datetime import datetime
from typing import Dict, List, Any, Optional

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {'high': 0, 'normal': 1, 'low': 2}


class MemoryEmailQueueStore:
    """Process-local queue storage guarded by a lock."""

    def __init__(self):
        self._items: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def push(self, item: Dict[str, Any]):
        with self._lock:
            self._items.append(item)

    def items(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._items)

    def pop_due(self, now: datetime) -> List[Dict[str, Any]]:
        """Remove and return every item due at ``now``; each item is handed out once."""
        with self._lock:
            due = [i for i in self._items if not i['scheduled_for'] or i['scheduled_for'] <= now]
            self._items = [i for i in self._items if i['scheduled_for'] and i['scheduled_for'] > now]
        return due

    def clear(self):
        with self._lock:
            self._items = []


class EmailQueue:
    """Priority queue of pending emails in front of EmailService."""

    def __init__(self, email_service, store=None):
        self.email_service = email_service
        self.store = store or MemoryEmailQueueStore()

    def add(self, email_type: str, data: Dict[str, Any], priority: str = 'normal',
            scheduled_for: Optional[datetime] = None) -> Dict[str, Any]:
        """Queue an email; unknown priorities fall back to normal."""
        item = {
            'id': str(uuid.uuid4()),
            'type': email_type,
            'data': data,
            'priority': priority if priority in PRIORITY_ORDER else 'normal',
            'scheduled_for': scheduled_for,
            'attempts': 0,
        }
        self.store.push(item)
        logger.debug(f"Queued {email_type} email ({item['priority']})")
        return item

    def process(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Send every due item, highest priority first.

        Due items leave the store before dispatch, so concurrent drains never
        send the same email twice. Failed sends are dropped.

        Returns:
            {'processed': n, 'skipped': m}
        """
        if not self.email_service.enabled:
            self.store.clear()
            return {'processed': 0, 'skipped': 0}

        now = now or datetime.utcnow()
        due = self.store.pop_due(now)
        due.sort(key=lambda item: PRIORITY_ORDER[item['priority']])

        processed = 0
        skipped = 0
        for item in due:
            item['attempts'] += 1
            result = self.email_service.dispatch(item['type'], item['data'])
            if result.get('success'):
                processed += 1
            else:
                logger.warning(f"Queued {item['type']} email not sent: {result.get('error')}")
                skipped += 1

        if due:
            logger.info(f"Email queue processed: {processed} sent, {skipped} skipped")
        return {'processed': processed, 'skipped': skipped}

    def status(self) -> Dict[str, Any]:
        items = self.store.items()
        by_type: Dict[str, int] = {}
        for item in items:
            by_type[item['type']] = by_type.get(item['type'], 0) + 1
        return {
            'total': len(items),
            'byPriority': {
                priority: sum(1 for i in items if i['priority'] == priority)
                for priority in PRIORITY_ORDER
            },
            'byType': by_type,
            'emailEnabled': self.email_service.enabled,
        }
