"""
Unit tests for the dashboard summary and CSV export rows.
"""

import csv
import io
import pytest
from datetime import date, timedelta
from decimal import Decimal
from app.exceptions import ValidationFailedError
from app.services import report_service


@pytest.fixture
def two_sales(sales_service, draft, book, scarce_book, customer):
    """A discounted card sale to the customer and a cash walk-in sale."""
    draft.add_item(book.id, 3)
    draft.set_discount(10)
    draft.set_payment_method('card')
    draft.set_customer(customer.id)
    first = sales_service.complete_sale(draft)

    draft.add_item(scarce_book.id, 2)
    second = sales_service.complete_sale(draft)
    return first, second


class TestSalesSummary:

    def test_empty_window(self, session):
        summary = report_service.sales_summary(session)

        assert summary['sales_count'] == 0
        assert summary['revenue'] == Decimal('0.00')
        assert summary['average_ticket'] == Decimal('0.00')
        assert summary['by_payment_method'] == {}
        assert summary['daily'] == []

    def test_summary_totals(self, session, two_sales):
        first, second = two_sales
        summary = report_service.sales_summary(session, date.today(), date.today())

        # first: 30.00 - 3.00 + 2.40; second: 31.00 + 2.48
        assert first.total == Decimal('29.40')
        assert second.total == Decimal('33.48')
        assert summary['sales_count'] == 2
        assert summary['revenue'] == Decimal('62.88')
        assert summary['subtotal'] == Decimal('61.00')
        assert summary['tax'] == Decimal('4.88')
        assert summary['discount_given'] == Decimal('3.00')
        assert summary['items_sold'] == 5
        assert summary['average_ticket'] == Decimal('31.44')
        assert summary['by_payment_method']['card'] == {'count': 1, 'revenue': Decimal('29.40')}
        assert summary['by_payment_method']['cash']['count'] == 1
        assert summary['daily'][0]['count'] == 2

    def test_window_excludes_other_days(self, session, two_sales):
        yesterday = date.today() - timedelta(days=1)
        summary = report_service.sales_summary(session, yesterday, yesterday)
        assert summary['sales_count'] == 0


class TestCsvExport:

    def parse(self, rows):
        return list(csv.reader(io.StringIO(report_service.to_csv(rows))))

    def test_sales_report(self, session, two_sales):
        rows = self.parse(report_service.report_rows(session, 'sales'))

        assert rows[0][:3] == ['id', 'date', 'customer']
        assert len(rows) == 3
        assert rows[1][2] == 'Juan Pérez'
        assert rows[1][-1] == '29.40'

    def test_books_report(self, session, book, scarce_book):
        rows = self.parse(report_service.report_rows(session, 'books'))

        assert rows[0] == ['id', 'title', 'author', 'isbn', 'genre', 'price', 'stock', 'inventory_value']
        assert [r[1] for r in rows[1:]] == ['Ficciones', 'Rayuela']
        assert rows[2][-1] == '100.00'

    def test_customers_report(self, session, two_sales):
        rows = self.parse(report_service.report_rows(session, 'customers'))

        assert rows[1][1] == 'Juan Pérez'
        assert rows[1][4:] == ['1', '29.40']

    def test_top_books_report(self, session, two_sales):
        rows = self.parse(report_service.report_rows(session, 'top_books'))

        assert [r[1] for r in rows[1:]] == ['Rayuela', 'Ficciones']
        assert rows[1][3] == '3'

    def test_unknown_report(self, session):
        with pytest.raises(ValidationFailedError):
            report_service.report_rows(session, 'payroll')
