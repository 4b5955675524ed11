"""
Report service - read-only dashboard aggregations and CSV export.
"""
import csv
import io
from decimal import Decimal
from datetime import date
from typing import Dict, Any, List, Optional, Iterable
from sqlalchemy import func
from app.models import Sale, SaleItem, Book, Customer
from app.exceptions import ValidationFailedError
from app.services.sale_draft_service import money
from app.services.sales_service import SalesService, apply_date_window

REPORTS = ('sales', 'books', 'customers', 'top_books')


def sales_summary(session, start: Optional[date] = None, end: Optional[date] = None) -> Dict[str, Any]:
    """
    Totals of the sales made inside a date window (inclusive, either bound optional).

    Returns count, revenue, subtotal, tax, discount given, items sold, average
    ticket, revenue per payment method and the daily revenue series.
    """
    count, revenue, subtotal, tax = apply_date_window(
        session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total), 0),
            func.coalesce(func.sum(Sale.subtotal), 0),
            func.coalesce(func.sum(Sale.tax), 0),
        ),
        start, end
    ).one()

    # Discount is stored as a percentage; the money given away is per sale
    discount_given = sum(
        (sale.discount_amount for sale in apply_date_window(session.query(Sale), start, end).filter(Sale.discount > 0)),
        Decimal('0')
    )

    items_sold = apply_date_window(
        session.query(func.coalesce(func.sum(SaleItem.quantity), 0)).join(Sale, Sale.id == SaleItem.sale_id),
        start, end
    ).scalar()

    by_method = apply_date_window(
        session.query(Sale.payment_method, func.count(Sale.id), func.sum(Sale.total)),
        start, end
    ).group_by(Sale.payment_method).all()

    revenue = money(Decimal(str(revenue)))
    return {
        'start': start.isoformat() if start else None,
        'end': end.isoformat() if end else None,
        'sales_count': count,
        'revenue': revenue,
        'subtotal': money(Decimal(str(subtotal))),
        'tax': money(Decimal(str(tax))),
        'discount_given': money(discount_given),
        'items_sold': int(items_sold or 0),
        'average_ticket': money(revenue / count) if count else Decimal('0.00'),
        'by_payment_method': {
            method: {'count': method_count, 'revenue': money(Decimal(str(method_total or 0)))}
            for method, method_count, method_total in by_method
        },
        'daily': SalesService(session, catalog=None).sales_by_date(start, end),
    }


# ===== CSV EXPORT =====

def report_rows(session, report: str, start: Optional[date] = None, end: Optional[date] = None,
                top_limit: int = 10) -> List[List[Any]]:
    """Header row followed by data rows for one named report."""
    if report == 'sales':
        rows = [['id', 'date', 'customer', 'payment_method', 'items', 'subtotal', 'discount_pct', 'tax', 'total']]
        sales = apply_date_window(session.query(Sale), start, end).order_by(Sale.created_at.asc(), Sale.id.asc())
        for sale in sales:
            rows.append([
                sale.id, sale.created_at.isoformat(sep=' ', timespec='seconds'), sale.customer_name or '',
                sale.payment_method, sale.items_count, sale.subtotal, sale.discount, sale.tax, sale.total,
            ])
        return rows

    if report == 'books':
        rows = [['id', 'title', 'author', 'isbn', 'genre', 'price', 'stock', 'inventory_value']]
        for book in session.query(Book).order_by(Book.title.asc(), Book.id.asc()):
            rows.append([
                book.id, book.title, book.author, book.isbn or '', book.genre,
                book.price, book.stock, money(book.inventory_value),
            ])
        return rows

    if report == 'customers':
        rows = [['id', 'name', 'email', 'phone', 'purchases', 'total_spent']]
        spent = dict(
            (customer_id, (count, total)) for customer_id, count, total in
            apply_date_window(
                session.query(Sale.customer_id, func.count(Sale.id), func.sum(Sale.total)),
                start, end
            ).filter(Sale.customer_id.isnot(None)).group_by(Sale.customer_id)
        )
        for customer in session.query(Customer).order_by(Customer.name.asc(), Customer.id.asc()):
            count, total = spent.get(customer.id, (0, 0))
            rows.append([
                customer.id, customer.name, customer.email, customer.phone or '',
                count, money(Decimal(str(total or 0))),
            ])
        return rows

    if report == 'top_books':
        rows = [['book_id', 'title', 'author', 'units_sold', 'revenue']]
        for entry in SalesService(session, catalog=None).top_selling_books(top_limit, start, end):
            rows.append([entry['book_id'], entry['title'], entry['author'], entry['units_sold'], entry['revenue']])
        return rows

    raise ValidationFailedError(f'Unknown report: {report}', {'allowed': list(REPORTS)})


def to_csv(rows: Iterable[List[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerows(rows)
    return buffer.getvalue()
