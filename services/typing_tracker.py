"""
Typing indicators for project chats.

Kept in process memory: an entry expires TYPING_TTL seconds after the last
setTyping call, so a client that vanishes mid-message stops showing as typing.
"""

import threading
import time
from typing import Dict, List, Any, Optional, Tuple

TYPING_TTL = 10


class TypingTracker:
    """Who is typing in which project, guarded by a lock."""

    def __init__(self, ttl: float = TYPING_TTL):
        self.ttl = ttl
        self._entries: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def set_typing(self, project_id: str, user: Dict[str, Any], is_typing: bool,
                   now: Optional[float] = None):
        key = (project_id, user['id'])
        with self._lock:
            if is_typing:
                self._entries[key] = {
                    'userId': user['id'],
                    'name': user.get('name'),
                    'role': user.get('role'),
                    'updatedAt': now if now is not None else time.time(),
                }
            else:
                self._entries.pop(key, None)

    def get_typing(self, project_id: str, exclude_user_id: str = None,
                   now: Optional[float] = None) -> List[Dict[str, Any]]:
        """Live entries for a project, dropping expired ones as a side effect."""
        cutoff = (now if now is not None else time.time()) - self.ttl
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry['updatedAt'] < cutoff]
            for key in expired:
                del self._entries[key]
            return [
                {'userId': entry['userId'], 'user': {'name': entry['name'], 'role': entry['role']}}
                for (pid, uid), entry in self._entries.items()
                if pid == project_id and uid != exclude_user_id
            ]
