"""
Fire-and-forget notifications.

Callers only ever `enqueue`; a worker thread renders and mails each
notification. A delivery failure is logged and dropped, never re-raised into
the request that produced it.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from datetime import date
from typing import Callable, Protocol

from storefront.config import settings
from storefront.services.catalog import ProductSnapshot
from storefront.services.mailer import render_mail, send_mail
from storefront.services.sales import SalesReport

logger = logging.getLogger(__name__)

MailSender = Callable[[str, str, str], object]


class Notification(Protocol):
    kind: str

    def recipient(self) -> str: ...

    def subject(self) -> str: ...

    def render(self) -> str: ...


@dataclass(frozen=True)
class LowStockNotification:
    product: ProductSnapshot
    kind: str = "low_stock"

    def recipient(self) -> str:
        return settings.ADMIN_EMAIL

    def subject(self) -> str:
        return f"Low Stock Alert: {self.product.name}"

    def render(self) -> str:
        return render_mail("emails/low_stock.html", {"product": self.product})


@dataclass(frozen=True)
class DailySalesReportNotification:
    report: SalesReport
    report_date: date
    kind: str = "daily_sales"

    def recipient(self) -> str:
        return settings.ADMIN_EMAIL

    def subject(self) -> str:
        return f"Daily Sales Report - {self.report_date:%B} {self.report_date.day}, {self.report_date.year}"

    def render(self) -> str:
        return render_mail(
            "emails/daily_sales.html",
            {
                "report": self.report,
                "date": f"{self.report_date:%B} {self.report_date.day}, {self.report_date.year}",
            },
        )


_STOP = object()


class NotificationQueue:
    def __init__(self, sender: MailSender | None = None, maxsize: int = 0):
        self._sender = sender or send_mail
        self._queue: queue.Queue = queue.Queue(maxsize)
        self._thread: threading.Thread | None = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def enqueue(self, notification: Notification) -> None:
        try:
            self._queue.put_nowait(notification)
        except queue.Full:
            logger.error("Notification queue full, dropping %s", notification.kind)
            return
        logger.info("Queued %s notification", notification.kind)

    def deliver(self, notification: Notification) -> bool:
        try:
            sent = self._sender(
                notification.recipient(), notification.subject(), notification.render()
            )
        except Exception:
            logger.exception("Failed to deliver %s notification", notification.kind)
            return False
        if sent is False:
            logger.warning("Mail transport skipped %s notification", notification.kind)
            return False
        logger.info("Delivered %s notification to %s", notification.kind, notification.recipient())
        return True

    def drain(self) -> int:
        """Deliver everything currently queued on the calling thread."""
        delivered = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            try:
                if item is not _STOP and self.deliver(item):
                    delivered += 1
            finally:
                self._queue.task_done()

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.deliver(item)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(
            target=self._worker, name="notification-worker", daemon=True
        )
        self._thread.start()
        logger.info("Notification worker started")

    def stop(self, timeout: float | None = 5.0) -> None:
        if not self.running:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._thread = None
        logger.info("Notification worker stopped")
