"""
Customer notifications: template rendering, delivery and the communication log.

Templates live in the mock store and use ``{{name}}`` placeholders in both
subject and content.  Delivery goes through a ``NotificationGateway``;
``MockNotificationGateway`` keeps an outbox instead of talking to an email
or SMS provider.  Every attempt that reaches the gateway is logged.
"""

from __future__ import annotations

import itertools
import logging
import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from metrics import NOTIFICATIONS_TOTAL
from mock_db import MockDatabase, parse_iso, to_iso
from models import NotificationTemplate, Order

logger = logging.getLogger(__name__)

# Simulated hand-off latency per priority, in milliseconds
PRIORITY_DELAYS_MS = {"urgent": 100, "high": 300, "normal": 500, "low": 1000}

# Oldest communication log entries are dropped past this many
MAX_COMMUNICATION_LOGS = 1000

_STATS_WINDOWS = {"day": timedelta(days=1), "week": timedelta(days=7), "month": timedelta(days=30)}
_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


@dataclass
class Recipient:
    email: Optional[str] = None
    phone: Optional[str] = None
    user_id: Optional[str] = None
    name: Optional[str] = None


@dataclass
class NotificationResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    delivery_time: Optional[int] = None


@dataclass
class CommunicationLog:
    id: str
    type: str
    template_id: str
    recipient: str
    content: str
    status: str  # sent | delivered | failed | pending
    subject: Optional[str] = None
    sent_at: Optional[str] = None
    delivered_at: Optional[str] = None
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class NotificationGateway:
    """Abstract delivery channel."""
    def send(self, channel: str, address: str, subject: str, content: str) -> Tuple[bool, str]:
        raise NotImplementedError


class MockNotificationGateway(NotificationGateway):
    """Collects messages in ``outbox``; fails every send when ``fail`` is set."""
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.outbox: List[Dict[str, str]] = []
        self._seq = itertools.count(1)

    def send(self, channel: str, address: str, subject: str, content: str) -> Tuple[bool, str]:
        if self.fail:
            return False, "Delivery failed"
        message_id = f"msg_{next(self._seq)}"
        self.outbox.append(
            {"id": message_id, "channel": channel, "address": address, "subject": subject, "content": content}
        )
        return True, message_id


def render(text: str, variables: Dict[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders that have a value; leave the rest."""
    def substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        return str(variables[key]) if key in variables else match.group(0)

    return _PLACEHOLDER.sub(substitute, text)


class NotificationService:
    def __init__(
        self,
        db: MockDatabase,
        gateway: Optional[NotificationGateway] = None,
        clock: Optional[Callable[[], datetime]] = None,
        max_logs: int = MAX_COMMUNICATION_LOGS,
    ) -> None:
        self.db = db
        self.gateway = gateway or MockNotificationGateway()
        self._clock = clock or db.now
        self._logs: Deque[CommunicationLog] = deque(maxlen=max_logs)
        self._log_ids = itertools.count(1)

    # ---- templates ----

    def render(self, template: NotificationTemplate, variables: Dict[str, Any]) -> Tuple[str, str]:
        """Return ``(subject, content)`` for ``template``."""
        return render(template.subject or "", variables), render(template.content, variables)

    def get_templates(self, type: Optional[str] = None) -> List[NotificationTemplate]:
        templates = self.db.get_notification_templates()
        return [t for t in templates if t.type == type] if type else templates

    def save_template(self, template: NotificationTemplate) -> NotificationTemplate:
        saved = self.db.save_notification_template(template)
        logger.info(f"Notification template saved: {saved.name}", extra={"extra": {"template_id": saved.id}})
        return saved

    def validate_template_variables(self, template_id: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        template = self.db.get_notification_template(template_id)
        if template is None:
            return {"valid": False, "missing": ["template_not_found"]}
        missing = [name for name in template.variables if name not in variables]
        return {"valid": not missing, "missing": missing}

    # ---- sending ----

    def send_notification(
        self,
        template_id: str,
        recipient: Recipient,
        variables: Dict[str, Any],
        priority: str = "normal",
    ) -> NotificationResult:
        template = self.db.get_notification_template(template_id)
        if template is None:
            return NotificationResult(False, error="Template not found")
        subject, content = self.render(template, variables)
        return self._deliver(
            channel=template.type,
            template_id=template.id,
            recipient=recipient,
            subject=subject,
            content=content,
            priority=priority,
            metadata={"priority": priority, "variables": variables, "template_name": template.name},
        )

    def _deliver(
        self,
        channel: str,
        template_id: str,
        recipient: Recipient,
        subject: str,
        content: str,
        priority: str,
        metadata: Dict[str, Any],
    ) -> NotificationResult:
        address = recipient.email if channel == "email" else recipient.phone
        if not address:
            return NotificationResult(False, error=f"No {channel} address provided")
        delay = PRIORITY_DELAYS_MS.get(priority, PRIORITY_DELAYS_MS["normal"])

        ok, ref_or_reason = self.gateway.send(channel, address, subject, content)
        self._logs.append(
            CommunicationLog(
                id=f"log_{next(self._log_ids)}",
                type=channel,
                template_id=template_id,
                recipient=address,
                subject=subject or None,
                content=content,
                status="sent" if ok else "failed",
                sent_at=to_iso(self._clock()),
                error_message=None if ok else ref_or_reason,
                metadata=dict(metadata, message_id=ref_or_reason) if ok else dict(metadata),
            )
        )
        try:
            NOTIFICATIONS_TOTAL.inc(channel=channel, status="sent" if ok else "failed")
        except Exception:
            pass

        if not ok:
            logger.warning(f"{channel} notification to {address} failed: {ref_or_reason}")
            return NotificationResult(False, error=ref_or_reason, delivery_time=delay)
        logger.info(
            f"{channel} notification sent",
            extra={"user_id": recipient.user_id, "extra": {"template_id": template_id, "message_id": ref_or_reason}},
        )
        return NotificationResult(True, message_id=ref_or_reason, delivery_time=delay)

    def send_bulk_notifications(
        self,
        template_id: str,
        recipients: List[Recipient],
        variables: List[Dict[str, Any]],
        priority: str = "normal",
    ) -> Dict[str, Any]:
        results = [
            self.send_notification(template_id, recipient, variables[i] if i < len(variables) else {}, priority)
            for i, recipient in enumerate(recipients)
        ]
        success_count = sum(1 for r in results if r.success)
        return {"success_count": success_count, "failed_count": len(results) - success_count, "results": results}

    def mark_delivered(self, message_id: str) -> bool:
        for entry in self._logs:
            if entry.metadata.get("message_id") == message_id:
                entry.status = "delivered"
                entry.delivered_at = to_iso(self._clock())
                return True
        return False

    # ---- order lifecycle messages ----

    def _order_context(self, order_id: str) -> Tuple[Optional[Order], Optional[Recipient], Dict[str, Any]]:
        order = self.db.get_order_by_id(order_id)
        if order is None:
            return None, None, {}
        customer = self.db.get_user_by_id(order.customer_id)
        if customer is None:
            return order, None, {}
        recipient = Recipient(
            email=customer.email, phone=customer.phone, user_id=customer.id, name=customer.full_name
        )
        return order, recipient, {"customer_name": customer.full_name, "order_number": order.order_number}

    def send_order_confirmation(self, order_id: str) -> NotificationResult:
        order, recipient, variables = self._order_context(order_id)
        if order is None:
            return NotificationResult(False, error="Order not found")
        if recipient is None:
            return NotificationResult(False, error="Customer not found")
        variables["total"] = f"${order.total:.2f}"
        variables["items"] = "\n".join(
            f"{item.quantity}x {item.product_name} - ${item.unit_price * item.quantity:.2f}" for item in order.items
        )
        return self.send_notification("1", recipient, variables, priority="high")

    def send_order_shipped(
        self, order_id: str, tracking_number: str, delivery_date: Optional[str] = None
    ) -> NotificationResult:
        order, recipient, variables = self._order_context(order_id)
        if order is None:
            return NotificationResult(False, error="Order not found")
        if recipient is None:
            return NotificationResult(False, error="Customer not found")
        variables["tracking_number"] = tracking_number
        variables["delivery_date"] = delivery_date or order.delivery_date or "To be confirmed"
        return self.send_notification("2", recipient, variables, priority="normal")

    def send_delivery_notification(self, order_id: str) -> NotificationResult:
        order, recipient, variables = self._order_context(order_id)
        if order is None:
            return NotificationResult(False, error="Order not found")
        if recipient is None:
            return NotificationResult(False, error="Customer not found")
        customer = self.db.get_user_by_id(order.customer_id)
        variables["customer_name"] = customer.first_name
        return self.send_notification("3", recipient, variables, priority="urgent")

    def send_promotional_campaign(
        self, campaign_name: str, subject: str, content: str, recipients: List[Recipient]
    ) -> Dict[str, int]:
        """Email ad-hoc campaign content; ``{{name}}`` becomes each recipient's name."""
        success_count = 0
        for recipient in recipients:
            variables = {"campaign_name": campaign_name, "name": recipient.name or "there"}
            result = self._deliver(
                channel="email",
                template_id="campaign",
                recipient=recipient,
                subject=render(subject, variables),
                content=render(content, variables),
                priority="low",
                metadata={"priority": "low", "campaign_name": campaign_name},
            )
            success_count += 1 if result.success else 0
        return {"success_count": success_count, "failed_count": len(recipients) - success_count}

    # ---- reporting ----

    def get_communication_logs(self, type: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[CommunicationLog]:
        logs = [entry for entry in reversed(self._logs) if not type or entry.type == type]
        return logs[offset:offset + limit]

    def get_delivery_stats(self, time_range: str = "week") -> Dict[str, float]:
        window = _STATS_WINDOWS.get(time_range, _STATS_WINDOWS["week"])
        since = self._clock() - window
        recent = [e for e in self._logs if e.sent_at and parse_iso(e.sent_at) >= since]
        sent = len(recent)
        delivered = sum(1 for e in recent if e.status in ("sent", "delivered"))
        failed = sum(1 for e in recent if e.status == "failed")
        return {
            "sent": sent,
            "delivered": delivered,
            "failed": failed,
            "delivery_rate": round(delivered / sent * 100, 2) if sent else 0.0,
        }
