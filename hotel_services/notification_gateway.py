"""
NotificationGateway -- best-effort, fire-and-forget message delivery.

Responsibility:
    Renders a template and hands the message to an email or SMS sender on a
    bounded worker pool.  The calling operation returns as soon as the task
    is submitted; delivery outcome is observed only by logging.

Architecture position:
    Services.  Called by the ledger and access-provisioning services
    strictly AFTER their state mutation and snapshot write have completed.

Invariants enforced:
    - ``dispatch`` never raises.  Unknown templates, render errors, sender
      errors, timeouts and a shut-down pool all become a logged
      ``NotificationFailure``.
    - Every send carries ``timeout_seconds`` so a slow provider cannot hold
      a worker indefinitely.
    - The caller's ``LogContext`` is captured at dispatch time and bound in
      the worker thread.

Failure modes:
    - None visible to callers.  ``notification_failed`` is logged at ERROR
      with template, recipient and entity reference for manual resend.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Mapping

from hotel_kernel.domain.notifications import (
    Channel,
    EmailSender,
    RenderedMessage,
    SmsSender,
)
from hotel_kernel.exceptions import NotificationFailure
from hotel_kernel.logging_config import LogContext, get_logger
from hotel_services.templates import NotificationTemplate, render_notification, render_sms

logger = get_logger("services.notifications")


class NotificationGateway:
    def __init__(
        self,
        email_sender: EmailSender,
        sms_sender: SmsSender | None = None,
        *,
        timeout_seconds: float = 10.0,
        max_workers: int = 2,
        synchronous: bool = False,
        defaults: Mapping[str, Any] | None = None,
        renderer: Callable[[NotificationTemplate, Mapping[str, Any]], RenderedMessage] = render_notification,
    ) -> None:
        self._email_sender = email_sender
        self._sms_sender = sms_sender
        self._timeout = timeout_seconds
        self._synchronous = synchronous
        self._defaults = dict(defaults or {})
        self._renderer = renderer
        self._executor = (
            None if synchronous
            else ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self._sent = 0
        self._failed = 0

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def dispatch(
        self,
        template: NotificationTemplate | str,
        recipient: str,
        data: Mapping[str, Any],
        *,
        channel: Channel = Channel.EMAIL,
        reference: str | None = None,
    ) -> Future | None:
        """Schedule delivery.  Returns the task future, or None when run inline or dropped."""
        try:
            template = NotificationTemplate(template)
        except ValueError as exc:
            self._record_failure(template, recipient, reference, exc)
            return None
        payload = {**self._defaults, **data}
        context = LogContext.get_all()

        def task() -> None:
            with LogContext.bind(**context):
                self._deliver(template, recipient, payload, channel, reference)

        if self._executor is None:
            task()
            return None

        try:
            future = self._executor.submit(task)
        except RuntimeError as exc:
            # Pool already shut down.
            self._record_failure(template, recipient, reference, exc)
            return None

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        logger.debug(
            "notification_scheduled",
            extra={"template": template.value, "recipient": recipient, "channel": channel.value},
        )
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _deliver(
        self,
        template: NotificationTemplate,
        recipient: str,
        payload: Mapping[str, Any],
        channel: Channel,
        reference: str | None,
    ) -> None:
        try:
            if channel == Channel.SMS:
                if self._sms_sender is None:
                    raise RuntimeError("No SMS sender configured")
                self._sms_sender.send_sms(
                    recipient, render_sms(template, payload), timeout=self._timeout
                )
            else:
                message = self._renderer(template, payload)
                self._email_sender.send_email(
                    recipient,
                    message.subject,
                    message.html,
                    message.text,
                    timeout=self._timeout,
                )
        except Exception as exc:
            self._record_failure(template, recipient, reference, exc)
            return

        with self._lock:
            self._sent += 1
        logger.info(
            "notification_sent",
            extra={
                "template": template.value,
                "recipient": recipient,
                "channel": channel.value,
                "reference": reference,
            },
        )

    def _record_failure(
        self,
        template: NotificationTemplate | str,
        recipient: str,
        reference: str | None,
        exc: BaseException,
    ) -> None:
        name = template.value if isinstance(template, NotificationTemplate) else str(template)
        failure = NotificationFailure(name, recipient, reference, exc)
        with self._lock:
            self._failed += 1
        logger.error(
            "notification_failed",
            exc_info=(NotificationFailure, failure, exc.__traceback__),
            extra={"template": name, "recipient": recipient, "reference": reference},
        )

    def drain(self, timeout: float | None = None) -> bool:
        """Wait for outstanding sends.  True when none remain."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"sent": self._sent, "failed": self._failed, "pending": len(self._pending)}

    def shutdown(self, wait_for_pending: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait_for_pending)
