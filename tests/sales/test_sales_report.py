"""
Tests for sales aggregation in storefront/services/sales.py
"""
from datetime import datetime
from decimal import Decimal

import pytest

from storefront.models import Order, OrderItem, OrderStatus
from storefront.services.sales import SalesPeriod, period_bounds, sales_report


NOW = datetime(2024, 5, 15, 14, 30)  # a Wednesday


@pytest.fixture
def make_order(db):
    def _make_order(user, lines, status=OrderStatus.COMPLETED, created_at=NOW):
        total = sum((Decimal(price) * qty for _, qty, price in lines), Decimal("0.00"))
        order = Order(user_id=user.id, total_amount=total, status=status, created_at=created_at)
        db.add(order)
        db.flush()
        for product, qty, price in lines:
            db.add(OrderItem(order_id=order.id, product_id=product.id, quantity=qty, price=Decimal(price)))
        db.commit()
        return order

    return _make_order


class TestPeriodBounds:

    def test_today(self):
        assert period_bounds(SalesPeriod.TODAY, NOW) == (
            datetime(2024, 5, 15),
            datetime(2024, 5, 16),
        )

    def test_week_starts_on_monday(self):
        assert period_bounds(SalesPeriod.WEEK, NOW) == (
            datetime(2024, 5, 13),
            datetime(2024, 5, 20),
        )

    def test_month(self):
        assert period_bounds(SalesPeriod.MONTH, NOW) == (
            datetime(2024, 5, 1),
            datetime(2024, 6, 1),
        )

    def test_december_rolls_into_next_year(self):
        assert period_bounds(SalesPeriod.MONTH, datetime(2023, 12, 31, 23, 59)) == (
            datetime(2023, 12, 1),
            datetime(2024, 1, 1),
        )

    def test_all_time(self):
        assert period_bounds(SalesPeriod.ALL, NOW) is None


class TestSalesReport:

    def test_totals_and_breakdown(self, db, make_user, make_product, make_order):
        user = make_user()
        a = make_product(name="A")
        b = make_product(name="B")
        make_order(user, [(a, 2, "50.00"), (b, 1, "30.00")])
        make_order(user, [(b, 4, "30.00")])

        report = sales_report(db, SalesPeriod.TODAY, now=NOW)

        assert report.total_orders == 2
        assert report.total_sales == Decimal("250.00")
        assert [(row.product_name, row.quantity, row.revenue) for row in report.product_sales] == [
            ("B", 5, Decimal("150.00")),
            ("A", 2, Decimal("100.00")),
        ]

    def test_ties_keep_first_seen_order(self, db, make_user, make_product, make_order):
        user = make_user()
        first = make_product(name="First")
        second = make_product(name="Second")
        third = make_product(name="Third")
        # newest order is read first
        make_order(user, [(second, 2, "1.00")], created_at=datetime(2024, 5, 15, 9))
        make_order(user, [(first, 2, "1.00"), (third, 5, "1.00")], created_at=datetime(2024, 5, 15, 10))

        report = sales_report(db, SalesPeriod.TODAY, now=NOW)

        assert [row.product_name for row in report.product_sales] == ["Third", "First", "Second"]

    def test_only_completed_orders_count(self, db, make_user, make_product, make_order):
        user = make_user()
        product = make_product()
        make_order(user, [(product, 1, "10.00")])
        make_order(user, [(product, 1, "10.00")], status=OrderStatus.PENDING)
        make_order(user, [(product, 1, "10.00")], status=OrderStatus.CANCELLED)

        report = sales_report(db, SalesPeriod.ALL, now=NOW)

        assert report.total_orders == 1
        assert report.total_sales == Decimal("10.00")

    def test_period_filters_orders(self, db, make_user, make_product, make_order):
        user = make_user()
        product = make_product()
        make_order(user, [(product, 1, "1.00")], created_at=datetime(2024, 5, 15, 8))   # today
        make_order(user, [(product, 1, "2.00")], created_at=datetime(2024, 5, 13, 8))   # monday
        make_order(user, [(product, 1, "4.00")], created_at=datetime(2024, 5, 2, 8))    # this month
        make_order(user, [(product, 1, "8.00")], created_at=datetime(2024, 4, 30, 23))  # last month

        totals = {
            period: sales_report(db, period, now=NOW).total_sales
            for period in SalesPeriod
        }

        assert totals == {
            SalesPeriod.TODAY: Decimal("1.00"),
            SalesPeriod.WEEK: Decimal("3.00"),
            SalesPeriod.MONTH: Decimal("7.00"),
            SalesPeriod.ALL: Decimal("15.00"),
        }

    def test_deleted_product_keeps_its_line(self, db, make_user, make_product, make_order):
        user = make_user()
        product = make_product(name="Gone")
        make_order(user, [(product, 3, "5.00")])
        db.execute(OrderItem.__table__.update().values(product_id=None))
        db.commit()
        db.expire_all()

        report = sales_report(db, SalesPeriod.TODAY, now=NOW)

        row = report.product_sales[0]
        assert row.product_id is None
        assert row.product_name == "Product not found"
        assert row.revenue == Decimal("15.00")

    def test_empty_report(self, db):
        report = sales_report(db, SalesPeriod.TODAY, now=NOW)

        assert report.total_orders == 0
        assert report.total_sales == Decimal("0.00")
        assert report.product_sales == []
