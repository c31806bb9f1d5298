"""
Security event monitor.

Analyzes incoming requests for known attack patterns, keeps a bounded
in-memory event log with per-IP counters and maintains the IP block list.
An IP is blocked automatically on a critical event or once it has produced
SUSPICIOUS_EVENT_LIMIT events. Loopback and unspecified addresses are never
blocked.
"""

import logging
import re
import secrets
import string
import threading
import time
from collections import deque
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any
from urllib.parse import unquote

logger = logging.getLogger(__name__)

MAX_EVENTS = 10000
SUSPICIOUS_EVENT_LIMIT = 10
WHITELISTED_IPS = {'127.0.0.1', '::1', 'localhost', '0.0.0.0', '::'}


class ThreatLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecurityEventType:
    SQL_INJECTION_ATTEMPT = 'sql_injection_attempt'
    XSS_ATTEMPT = 'xss_attempt'
    MALICIOUS_INPUT = 'malicious_input'
    SUSPICIOUS_USER_AGENT = 'suspicious_user_agent'
    UNAUTHORIZED_ACCESS = 'unauthorized_access'
    RATE_LIMIT_EXCEEDED = 'rate_limit_exceeded'
    CSRF_ATTACK = 'csrf_attack'
    MALICIOUS_FILE_UPLOAD = 'malicious_file_upload'


THREAT_PATTERNS = {
    'sql_injection': [
        r"\bSELECT\b.*\bFROM\b",
        r"\bUNION\b.*\bSELECT\b",
        r"\bINSERT\b.*\bINTO\b",
        r"\bDELETE\b.*\bFROM\b",
        r"\bDROP\b.*\bTABLE\b",
        r"\bEXEC\b.*\bXP_",
        r"\bOR\b.*1=1",
        r"\bAND\b.*1=1",
    ],
    'xss': [
        r"<script\b",
        r"javascript:",
        r"vbscript:",
        r"on\w+\s*=",
        r"<iframe\b",
        r"<object\b",
        r"<embed\b",
        r"<link\b",
        r"<meta\b",
    ],
    'path_traversal': [
        r"\.\./",
        r"\.\.\\",
        r"%2e%2e%2f",
        r"%2e%2e%5c",
    ],
    'suspicious_agents': [
        r"sqlmap", r"nmap", r"nikto", r"burp", r"acunetix",
        r"nessus", r"openvas", r"w3af", r"havij", r"dirbuster",
    ],
}

_COMPILED = {
    name: [re.compile(p, re.IGNORECASE) for p in patterns]
    for name, patterns in THREAT_PATTERNS.items()
}

_ID_ALPHABET = string.ascii_lowercase + string.digits


def _event_id() -> str:
    suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(13))
    return f"sec_{int(time.time() * 1000)}_{suffix}"


def _first_match(category: str, value: str) -> Optional[str]:
    for pattern in _COMPILED[category]:
        if pattern.search(value):
            return pattern.pattern
    return None


@dataclass
class SecurityEvent:
    """Security event record"""
    type: str
    severity: ThreatLevel
    ip: str
    description: str
    user_agent: Optional[str] = None
    user_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_event_id)
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat(),
            'type': self.type,
            'severity': self.severity.value,
            'source': {'ip': self.ip, 'userAgent': self.user_agent, 'userId': self.user_id},
            'details': dict(data['details'], description=self.description),
            'metadata': data['metadata'],
        }


class MemorySecurityEventStore:
    """Bounded event log, per-IP counters and block list in process memory."""

    def __init__(self, max_events: int = MAX_EVENTS):
        self.events: deque = deque(maxlen=max_events)
        self.suspicious_ips: Dict[str, Dict[str, Any]] = {}
        self.blocked_ips = set()
        self.lock = threading.RLock()


class SecurityMonitor:

    def __init__(self, store: MemorySecurityEventStore = None,
                 whitelist=None, suspicious_limit: int = SUSPICIOUS_EVENT_LIMIT):
        self.store = store or MemorySecurityEventStore()
        self.whitelist = set(WHITELISTED_IPS if whitelist is None else whitelist)
        self.suspicious_limit = suspicious_limit

    # =========================================================================
    # EVENTS
    # =========================================================================

    def log_event(self, event: SecurityEvent) -> SecurityEvent:
        """Record an event, update the IP counter and auto-block when due."""
        store = self.store
        with store.lock:
            store.events.append(event)
            tracked = store.suspicious_ips.get(event.ip)
            if tracked:
                tracked['count'] += 1
                tracked['lastSeen'] = event.timestamp
            else:
                tracked = {'count': 1, 'firstSeen': event.timestamp, 'lastSeen': event.timestamp}
                store.suspicious_ips[event.ip] = tracked
            count = tracked['count']

        self._log(event)

        if event.ip not in store.blocked_ips:
            if event.severity == ThreatLevel.CRITICAL:
                self.block_ip(event.ip, f"Critical threat: {event.type}")
            elif count >= self.suspicious_limit:
                self.block_ip(event.ip, f"Too many suspicious events ({count})")
        return event

    @staticmethod
    def _log(event: SecurityEvent):
        message = f"Security event {event.type} [{event.severity.value}] from {event.ip}: {event.description}"
        if event.severity == ThreatLevel.CRITICAL:
            logger.error(message)
        elif event.severity == ThreatLevel.HIGH:
            logger.warning(message)
        else:
            logger.info(message)

    def record(self, event_type: str, severity: ThreatLevel, ip: str, description: str,
               user_agent: str = None, user_id: str = None, **details) -> SecurityEvent:
        return self.log_event(SecurityEvent(
            type=event_type,
            severity=severity,
            ip=ip,
            description=description,
            user_agent=user_agent,
            user_id=user_id,
            details=details
        ))

    # =========================================================================
    # REQUEST ANALYSIS
    # =========================================================================

    def analyze_request(self, ip: str, url: str, query_params: Dict[str, List[str]],
                        user_agent: str = '', user_id: str = None) -> List[SecurityEvent]:
        """
        Look for attack patterns in a request without recording anything.

        Args:
            ip: Client IP
            url: Full request URL (raw, before percent-decoding)
            query_params: Mapping of parameter name to its values
            user_agent: User-Agent header
            user_id: Session user, if any

        Returns:
            List of SecurityEvent found, possibly empty
        """
        threats = []
        source = {'ip': ip, 'user_agent': user_agent, 'user_id': user_id}

        if self.is_blocked(ip):
            threats.append(SecurityEvent(
                type=SecurityEventType.UNAUTHORIZED_ACCESS,
                severity=ThreatLevel.HIGH,
                description='Request from blocked IP address',
                details={'endpoint': url},
                metadata={'blocked': True},
                **source
            ))

        pattern = _first_match('suspicious_agents', user_agent or '')
        if pattern:
            threats.append(SecurityEvent(
                type=SecurityEventType.SUSPICIOUS_USER_AGENT,
                severity=ThreatLevel.MEDIUM,
                description='Suspicious user agent detected',
                details={'pattern': pattern},
                **source
            ))

        pattern = _first_match('path_traversal', url) or _first_match('path_traversal', unquote(url))
        if pattern:
            threats.append(SecurityEvent(
                type=SecurityEventType.MALICIOUS_INPUT,
                severity=ThreatLevel.HIGH,
                description='Path traversal attempt detected',
                details={'url': url, 'pattern': pattern},
                **source
            ))

        for key, values in query_params.items():
            for value in values:
                pattern = _first_match('sql_injection', value)
                if pattern:
                    threats.append(SecurityEvent(
                        type=SecurityEventType.SQL_INJECTION_ATTEMPT,
                        severity=ThreatLevel.CRITICAL,
                        description='SQL injection attempt detected in query parameter',
                        details={'parameter': key, 'value': value, 'pattern': pattern},
                        **source
                    ))
                pattern = _first_match('xss', value)
                if pattern:
                    threats.append(SecurityEvent(
                        type=SecurityEventType.XSS_ATTEMPT,
                        severity=ThreatLevel.HIGH,
                        description='XSS attempt detected in query parameter',
                        details={'parameter': key, 'value': value, 'pattern': pattern},
                        **source
                    ))
        return threats

    # =========================================================================
    # BLOCK LIST
    # =========================================================================

    def block_ip(self, ip: str, reason: str) -> bool:
        if ip in self.whitelist:
            logger.warning(f"Refusing to block whitelisted IP {ip}")
            return False
        with self.store.lock:
            self.store.blocked_ips.add(ip)
        self.log_event(SecurityEvent(
            type=SecurityEventType.UNAUTHORIZED_ACCESS,
            severity=ThreatLevel.HIGH,
            ip=ip,
            description=f"IP address blocked: {reason}",
            metadata={'blocked': True, 'actionTaken': 'IP_BLOCKED'}
        ))
        return True

    def unblock_ip(self, ip: str) -> bool:
        with self.store.lock:
            self.store.blocked_ips.discard(ip)
            self.store.suspicious_ips.pop(ip, None)
        self.log_event(SecurityEvent(
            type=SecurityEventType.UNAUTHORIZED_ACCESS,
            severity=ThreatLevel.MEDIUM,
            ip=ip,
            description='IP address unblocked',
            metadata={'blocked': False, 'actionTaken': 'IP_UNBLOCKED'}
        ))
        return True

    def is_blocked(self, ip: str) -> bool:
        return ip in self.store.blocked_ips

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_events(self, event_type: str = None, severity: str = None, ip: str = None,
                   user_id: str = None, start: datetime = None, end: datetime = None,
                   limit: int = None) -> List[Dict[str, Any]]:
        """Filtered events, newest first."""
        with self.store.lock:
            events = list(self.store.events)

        if event_type:
            events = [e for e in events if e.type == event_type]
        if severity:
            events = [e for e in events if e.severity.value == severity]
        if ip:
            events = [e for e in events if e.ip == ip]
        if user_id:
            events = [e for e in events if e.user_id == user_id]
        if start:
            events = [e for e in events if e.timestamp >= start]
        if end:
            events = [e for e in events if e.timestamp <= end]

        events.sort(key=lambda e: e.timestamp, reverse=True)
        if limit:
            events = events[:limit]
        return [e.to_dict() for e in events]

    def get_stats(self) -> Dict[str, Any]:
        by_severity: Dict[str, int] = {}
        by_type: Dict[str, int] = {}
        with self.store.lock:
            for event in self.store.events:
                by_severity[event.severity.value] = by_severity.get(event.severity.value, 0) + 1
                by_type[event.type] = by_type.get(event.type, 0) + 1
            top_ips = sorted(self.store.suspicious_ips.items(), key=lambda kv: kv[1]['count'], reverse=True)[:10]
            total = len(self.store.events)
            blocked = sorted(self.store.blocked_ips)

        return {
            'totalEvents': total,
            'eventsBySeverity': by_severity,
            'eventsByType': by_type,
            'topSuspiciousIPs': [
                {
                    'ip': ip,
                    'count': data['count'],
                    'firstSeen': data['firstSeen'].isoformat(),
                    'lastSeen': data['lastSeen'].isoformat(),
                }
                for ip, data in top_ips
            ],
            'blockedIPs': blocked,
            'recentEvents': self.get_events(limit=20),
        }
