"""
Notification extension point for notify actions.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from shared.logging import get_logger


class Notifier(ABC):
    """Delivers ticket notifications to recipients."""

    @abstractmethod
    async def notify(self, ticket: Dict[str, Any], recipients: List[str],
                     template: Optional[str] = None) -> None:
        """Inform ``recipients`` about ``ticket``."""


class LoggingNotifier(Notifier):
    """Notifier that records notifications in the log and keeps them for inspection."""

    def __init__(self):
        self.logger = get_logger("rule_engine.notifications")
        self.sent: List[Dict[str, Any]] = []

    async def notify(self, ticket: Dict[str, Any], recipients: List[str],
                     template: Optional[str] = None) -> None:
        self.sent.append({
            "ticket_id": ticket.get("id"),
            "recipients": list(recipients),
            "template": template,
        })
        self.logger.info(
            "Notification requested",
            ticket_id=ticket.get("id"),
            recipients=recipients,
            template=template
        )
