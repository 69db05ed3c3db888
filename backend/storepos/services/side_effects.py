# Overview: Best-effort, non-blocking hand-off of audit entries and notifications.

"""
Side effects are decoupled from the transactional core:

- They are dispatched only after the primary transaction committed.
- A failing sink is logged and swallowed; it can never roll back a sale,
  refund or shift change.
- In "thread" mode the sink runs on a worker thread with its own app
  context and session. In "sync" mode it runs inline, right after commit
  (used by tests and single-process tooling).
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from flask import current_app

from ..extensions import db
from .audit_service import AuditEntry, DatabaseAuditSink
from .notification_service import NotificationMessage, DatabaseNotificationSink


EXTENSION_KEY = "storepos.side_effects"

MODE_THREAD = "thread"
MODE_SYNC = "sync"


class SideEffectDispatcher:
    def __init__(self, app=None, *, audit_sink=None, notification_sink=None):
        self.audit_sink = audit_sink or DatabaseAuditSink()
        self.notification_sink = notification_sink or DatabaseNotificationSink()
        self.app = None
        self.mode = MODE_SYNC
        self._executor = None
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.app = app
        self.mode = app.config.get("SIDE_EFFECTS_MODE", MODE_THREAD)
        if self.mode not in (MODE_THREAD, MODE_SYNC):
            raise ValueError(f"SIDE_EFFECTS_MODE must be '{MODE_THREAD}' or '{MODE_SYNC}', got {self.mode!r}")
        if self.mode == MODE_THREAD:
            self._executor = ThreadPoolExecutor(
                max_workers=app.config.get("SIDE_EFFECTS_MAX_WORKERS", 2),
                thread_name_prefix="storepos-side-effects",
            )
        app.extensions[EXTENSION_KEY] = self

    def audit(self, entry: AuditEntry) -> None:
        self._dispatch("audit entry", self.audit_sink.record, entry)

    def notify(self, notification: NotificationMessage) -> None:
        self._dispatch("notification", self.notification_sink.send, notification)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def _dispatch(self, label: str, handler, payload) -> None:
        if self._executor is None:
            self._deliver(label, handler, payload)
            return
        try:
            self._executor.submit(self._deliver_in_context, label, handler, payload)
        except RuntimeError:
            self.app.logger.exception("Side-effect worker unavailable; dropped %s %r", label, payload)

    def _deliver_in_context(self, label: str, handler, payload) -> None:
        with self.app.app_context():
            try:
                self._deliver(label, handler, payload)
            finally:
                db.session.remove()

    def _deliver(self, label: str, handler, payload) -> None:
        try:
            handler(payload)
        except Exception:
            db.session.rollback()
            self.app.logger.exception("Failed to deliver %s %r", label, payload)


def get_dispatcher() -> SideEffectDispatcher:
    return current_app.extensions[EXTENSION_KEY]


def audit(
    action: str,
    entity_type: str,
    entity_id,
    *,
    actor_id: int | None = None,
    old_value=None,
    new_value=None,
) -> None:
    get_dispatcher().audit(
        AuditEntry(
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            actor_id=actor_id,
            old_value=old_value,
            new_value=new_value,
        )
    )


def notify(title: str, message: str, type: str, link: str | None = None) -> None:
    get_dispatcher().notify(NotificationMessage(title=title, message=message, type=type, link=link))
