"""
Console commands meant to be run from cron or another external scheduler.

    storefront-daily-report [--date YYYY-MM-DD]
"""

import argparse
import logging
import sys
from datetime import date, datetime, time

from storefront.db import SessionLocal
from storefront.main import configure_logging
from storefront.services.notifications import DailySalesReportNotification, NotificationQueue
from storefront.services.sales import SalesPeriod, sales_report, utcnow

logger = logging.getLogger(__name__)


def send_daily_sales_report(db, notifications: NotificationQueue, report_date: date | None = None):
    now = datetime.combine(report_date, time(12)) if report_date else utcnow()
    report = sales_report(db, SalesPeriod.TODAY, now=now)
    notifications.enqueue(DailySalesReportNotification(report, now.date()))
    logger.info(
        "Daily sales report for %s queued: %s order(s), total %s",
        now.date(),
        report.total_orders,
        report.total_sales,
    )
    return report


def daily_report(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="storefront-daily-report",
        description="Send daily sales report to admin",
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="report on this day instead of today (YYYY-MM-DD)",
    )
    args = parser.parse_args(argv)

    configure_logging()
    notifications = NotificationQueue()
    db = SessionLocal()
    try:
        send_daily_sales_report(db, notifications, args.date)
    finally:
        db.close()

    delivered = notifications.drain()
    if not delivered:
        logger.error("Daily sales report was not delivered")
        return 1
    print("Daily sales report sent successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(daily_report())
