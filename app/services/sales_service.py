"""
Sales service with transactional logic.
Turns a draft sale into a recorded Sale, its items and the stock decrements,
and answers the sales-side reporting queries.
"""
import logging
from decimal import Decimal
from datetime import datetime, date, timedelta
from typing import List, Dict, Optional, Any
from sqlalchemy import func, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from app.models import Book, Customer, Sale, SaleItem, SaleStatus
from app.exceptions import BookstoreError, NotFoundError, ValidationFailedError
from app.database import translate_db_error
from app.services.sale_draft_service import DraftSale, money

logger = logging.getLogger(__name__)


class SalesService:
    """Checkout and sale history over one session and an explicit catalog handle."""

    def __init__(self, session, catalog):
        self.session = session
        self.catalog = catalog

    def complete_sale(self, draft: DraftSale) -> Sale:
        """
        Record the draft as a completed sale.

        Header, items and stock decrements run in one transaction: any failure
        (including a book sold out since it was added to the cart) rolls all of
        them back and leaves the draft untouched. On success the draft is
        cleared and the persisted Sale is returned with its items loaded.
        """
        if draft.is_empty():
            raise ValidationFailedError('Cannot complete a sale with no items')

        lines = draft.items
        logger.info('Checkout started: %s line(s), total %s', len(lines), draft.total)

        try:
            customer_name = draft.customer_name
            if draft.customer_id is not None:
                customer = self.session.get(Customer, draft.customer_id)
                if not customer:
                    raise NotFoundError(f'Customer {draft.customer_id} not found')
                customer_name = customer_name or customer.name

            # 1. Sale header with the totals frozen from the draft
            sale = Sale(
                customer_id=draft.customer_id,
                customer_name=customer_name,
                subtotal=draft.subtotal,
                tax=draft.tax,
                discount=draft.discount,
                total=draft.total,
                payment_method=draft.payment_method,
                status=SaleStatus.COMPLETED.value,
                notes=draft.notes,
                created_at=datetime.now(),
            )
            self.session.add(sale)
            self.session.flush()

            # 2. Items and conditional stock decrements
            for line in lines:
                self.session.add(SaleItem(
                    sale_id=sale.id,
                    book_id=line.book_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.subtotal,
                ))
                self.catalog.decrement_stock(line.book_id, line.quantity)

            self.session.commit()

        except BookstoreError as e:
            self.session.rollback()
            logger.warning('Checkout failed: %s', e.message)
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception('Checkout failed at the database')
            raise translate_db_error(e) from e

        draft.clear()
        logger.info('Sale %s completed: %s line(s), total %s', sale.id, len(lines), sale.total)
        return self.get_sale(sale.id)

    # ===== QUERIES =====

    def get_sale(self, sale_id) -> Sale:
        sale = (
            self.session.query(Sale)
            .options(selectinload(Sale.items).selectinload(SaleItem.book))
            .filter(Sale.id == sale_id)
            .populate_existing()
            .first()
        )
        if not sale:
            raise NotFoundError(f'Sale {sale_id} not found')
        return sale

    def list_sales(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Sale]:
        """Sales newest first, optionally limited to an inclusive date window."""
        q = self.session.query(Sale).options(selectinload(Sale.items))
        q = apply_date_window(q, start, end)
        return q.order_by(Sale.created_at.desc(), Sale.id.desc()).all()

    def total_sales(self) -> int:
        return self.session.query(func.count(Sale.id)).scalar() or 0

    def total_revenue(self, start: Optional[date] = None, end: Optional[date] = None) -> Decimal:
        q = apply_date_window(self.session.query(func.coalesce(func.sum(Sale.total), 0)), start, end)
        return money(Decimal(str(q.scalar() or 0)))

    def today(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Count and revenue of the sales made today."""
        today = today or date.today()
        count, revenue = apply_date_window(
            self.session.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0)),
            today, today
        ).one()
        return {'count': count, 'revenue': money(Decimal(str(revenue)))}

    def sales_by_date(self, start: Optional[date] = None, end: Optional[date] = None) -> List[Dict[str, Any]]:
        """Count and revenue grouped per calendar day, oldest first."""
        day = func.date(Sale.created_at)
        q = self.session.query(
            day.label('day'),
            func.count(Sale.id).label('count'),
            func.sum(Sale.total).label('revenue'),
        )
        rows = apply_date_window(q, start, end).group_by(day).order_by(day).all()
        return [
            {'date': str(row.day), 'count': row.count, 'revenue': money(Decimal(str(row.revenue or 0)))}
            for row in rows
        ]

    def top_selling_books(
        self,
        limit: int = 10,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        """Books ranked by units sold, with the revenue they produced."""
        q = (
            self.session.query(
                Book.id.label('book_id'),
                Book.title.label('title'),
                Book.author.label('author'),
                func.sum(SaleItem.quantity).label('units_sold'),
                func.sum(SaleItem.total_price).label('revenue'),
            )
            .join(SaleItem, SaleItem.book_id == Book.id)
            .join(Sale, Sale.id == SaleItem.sale_id)
        )
        rows = (
            apply_date_window(q, start, end)
            .group_by(Book.id, Book.title, Book.author)
            .order_by(desc('units_sold'), Book.id.asc())
            .limit(limit)
            .all()
        )
        return [
            {
                'book_id': row.book_id,
                'title': row.title,
                'author': row.author,
                'units_sold': int(row.units_sold or 0),
                'revenue': money(Decimal(str(row.revenue or 0))),
            }
            for row in rows
        ]

    def stats(self, top_limit: int = 10) -> Dict[str, Any]:
        return {
            'total_sales': self.total_sales(),
            'total_revenue': self.total_revenue(),
            'today': self.today(),
            'top_books': self.top_selling_books(top_limit),
        }


def apply_date_window(query, start: Optional[date], end: Optional[date]):
    """Limit a Sale query to [start 00:00, end + 1 day)."""
    if start:
        query = query.filter(Sale.created_at >= datetime.combine(start, datetime.min.time()))
    if end:
        query = query.filter(Sale.created_at < datetime.combine(end + timedelta(days=1), datetime.min.time()))
    return query
