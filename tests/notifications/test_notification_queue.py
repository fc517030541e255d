"""
Tests for the notification queue and mail rendering
"""
import time
from datetime import date
from decimal import Decimal

from storefront.services.catalog import ProductSnapshot
from storefront.services.notifications import (
    DailySalesReportNotification,
    LowStockNotification,
    NotificationQueue,
)
from storefront.services.sales import ProductSales, SalesPeriod, SalesReport


def _snapshot(**overrides):
    data = dict(id=7, name="Desk Lamp", description="Warm light", price=Decimal("24.90"), stock_quantity=3)
    data.update(overrides)
    return ProductSnapshot(**data)


class TestLowStockNotification:

    def test_subject_and_body(self):
        notification = LowStockNotification(_snapshot())

        assert notification.recipient() == "admin@example.com"
        assert notification.subject() == "Low Stock Alert: Desk Lamp"
        body = notification.render()
        assert "Desk Lamp" in body
        assert "3" in body

    def test_snapshot_is_taken_at_trigger_time(self):
        snapshot = _snapshot(stock_quantity=9)
        notification = LowStockNotification(snapshot)

        assert notification.product.stock_quantity == 9

    def test_product_name_is_escaped(self):
        body = LowStockNotification(_snapshot(name="<b>Lamp</b>")).render()

        assert "<b>Lamp</b>" not in body
        assert "&lt;b&gt;Lamp&lt;/b&gt;" in body


class TestDailySalesReportNotification:

    def test_subject_uses_long_date(self):
        report = SalesReport(period=SalesPeriod.TODAY)
        notification = DailySalesReportNotification(report, date(2024, 3, 5))

        assert notification.subject() == "Daily Sales Report - March 5, 2024"

    def test_body_lists_product_sales(self):
        report = SalesReport(
            period=SalesPeriod.TODAY,
            total_sales=Decimal("130.00"),
            total_orders=1,
            product_sales=[ProductSales(1, "Keyboard", 2, Decimal("100.00"))],
        )

        body = DailySalesReportNotification(report, date(2024, 3, 5)).render()

        assert "Keyboard" in body
        assert "130.00" in body


class TestNotificationQueue:

    def test_enqueue_does_not_deliver(self):
        sent = []
        queue = NotificationQueue(sender=lambda *args: sent.append(args))

        queue.enqueue(LowStockNotification(_snapshot()))

        assert queue.pending == 1
        assert sent == []

    def test_drain_delivers_everything(self):
        sent = []
        queue = NotificationQueue(sender=lambda to, subject, body: sent.append(subject))
        queue.enqueue(LowStockNotification(_snapshot(name="A")))
        queue.enqueue(LowStockNotification(_snapshot(name="B")))

        delivered = queue.drain()

        assert delivered == 2
        assert sent == ["Low Stock Alert: A", "Low Stock Alert: B"]
        assert queue.pending == 0

    def test_delivery_failure_is_logged_not_raised(self, caplog):
        def broken_sender(to, subject, body):
            raise ConnectionRefusedError("smtp down")

        queue = NotificationQueue(sender=broken_sender)
        queue.enqueue(LowStockNotification(_snapshot()))

        with caplog.at_level("ERROR", logger="storefront.services.notifications"):
            delivered = queue.drain()

        assert delivered == 0
        assert "Failed to deliver low_stock notification" in caplog.text

    def test_worker_thread_delivers(self):
        sent = []
        queue = NotificationQueue(sender=lambda to, subject, body: sent.append(subject))
        queue.start()
        try:
            assert queue.running
            queue.enqueue(LowStockNotification(_snapshot()))
            deadline = time.monotonic() + 5
            while not sent and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            queue.stop()

        assert sent == ["Low Stock Alert: Desk Lamp"]
        assert not queue.running

    def test_full_queue_drops_instead_of_blocking(self, caplog):
        queue = NotificationQueue(sender=lambda *args: None, maxsize=1)
        queue.enqueue(LowStockNotification(_snapshot(name="kept")))

        with caplog.at_level("ERROR", logger="storefront.services.notifications"):
            queue.enqueue(LowStockNotification(_snapshot(name="dropped")))

        assert queue.pending == 1
        assert "Notification queue full" in caplog.text
