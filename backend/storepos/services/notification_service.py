# Overview: Notification collaborator contract and its default database sink.

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Optional

from ..extensions import db
from ..models import Notification


NOTIF_CLOCK_IN = "clock_in"
NOTIF_CLOCK_OUT = "clock_out"
NOTIF_CASH_DISCREPANCY = "cash_discrepancy"
NOTIF_POS_SALE = "pos_sale"


@dataclass(frozen=True)
class NotificationMessage:
    title: str
    message: str
    type: str
    link: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class DatabaseNotificationSink:
    """Stores in-app notifications for admins and active staff."""

    def send(self, notification: NotificationMessage) -> Notification:
        row = Notification(
            title=notification.title,
            message=notification.message,
            type=notification.type,
            link=notification.link,
        )
        db.session.add(row)
        db.session.commit()
        return row


def get_recent_notifications(limit: int = 50, type: str | None = None) -> list[Notification]:
    query = db.session.query(Notification)
    if type:
        query = query.filter_by(type=type)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
