"""Component usage telemetry.

Each lifecycle call emits one event. Events are always logged and are
POSTed when a telemetry endpoint is configured; nothing is kept in memory.
Delivery problems are logged and never fail the operation.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

import requests

logger = logging.getLogger(__name__)


@dataclass
class TelemetryEvent:
    """One component invocation."""
    action: str
    account: str = ''
    context: str = 'pulumi'
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            'type': 'component',
            'context': self.context,
            'params': {
                'action': self.action,
                'account': self.account,
            },
            'timestamp': self.timestamp.isoformat(),
        }


class TelemetryReporter:
    """Reports component invocations."""

    def __init__(self, endpoint: str = '', timeout: float = 3.0, session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()

    def report(self, action: str, account: str = '') -> TelemetryEvent:
        event = TelemetryEvent(action=action, account=account)
        logger.debug(f"Component call: action={action} account={account or '-'}")
        if self.endpoint:
            self._post(event)
        return event

    def _post(self, event: TelemetryEvent) -> None:
        try:
            resp = self.session.post(self.endpoint, json=event.to_dict(), timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Telemetry report to {self.endpoint} failed: {e}")
