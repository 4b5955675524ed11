"""
Book catalog service.
Book records, stock counts and the inventory aggregates derived from them.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, List, Dict, Any, Tuple
from sqlalchemy import func, or_, case
from sqlalchemy.exc import SQLAlchemyError
from app.models import Book, SaleItem
from app.exceptions import NotFoundError, OutOfStockError, ValidationFailedError, ReferentialConflictError
from app.database import commit_or_raise, translate_db_error

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    'title': Book.title,
    'author': Book.author,
    'price': Book.price,
    'stock': Book.stock,
    'created_at': Book.created_at,
}

REQUIRED_FIELDS = ('title', 'author', 'genre', 'price')
EDITABLE_FIELDS = ('title', 'author', 'isbn', 'genre', 'price', 'stock', 'description')
TEXT_FIELDS = ('title', 'author', 'isbn', 'genre', 'description')


class BookCatalog:
    """Store handle over the `books` table, bound to one SQLAlchemy session."""

    def __init__(self, session, low_stock_threshold: int = 2):
        self.session = session
        self.low_stock_threshold = low_stock_threshold

    # ===== QUERIES =====

    def find_book(self, book_id) -> Optional[Book]:
        # Stock checks need the current row, not the identity-map copy
        return self.session.get(Book, book_id, populate_existing=True)

    def get_book(self, book_id) -> Book:
        """Get book by id or raise NotFoundError."""
        book = self.find_book(book_id)
        if not book:
            raise NotFoundError(f'Book {book_id} not found')
        return book

    def list_books(
        self,
        query: str = '',
        genre: str = '',
        sort: str = 'title',
        order: str = 'asc',
        page: Optional[int] = None,
        per_page: Optional[int] = None
    ) -> Tuple[List[Book], int]:
        """
        Search, filter, sort and paginate books.

        Free text matches title, author, isbn and genre (case-insensitive).
        Returns (books, total matches before pagination).
        """
        q = self.session.query(Book)

        if query:
            pattern = f'%{query.strip().lower()}%'
            q = q.filter(or_(
                func.lower(Book.title).like(pattern),
                func.lower(Book.author).like(pattern),
                func.lower(func.coalesce(Book.isbn, '')).like(pattern),
                func.lower(Book.genre).like(pattern),
            ))

        if genre:
            q = q.filter(Book.genre == genre)

        total = q.count()

        column = SORTABLE_FIELDS.get(sort)
        if column is None:
            raise ValidationFailedError(
                f'Cannot sort by "{sort}"',
                {'allowed': sorted(SORTABLE_FIELDS)}
            )
        q = q.order_by(column.desc() if order == 'desc' else column.asc(), Book.id.asc())

        if page and per_page:
            q = q.offset((page - 1) * per_page).limit(per_page)

        return q.all(), total

    def genres(self) -> List[str]:
        """Distinct genres, alphabetical."""
        rows = self.session.query(Book.genre).distinct().order_by(Book.genre).all()
        return [row[0] for row in rows]

    def total_books(self) -> int:
        return self.session.query(func.count(Book.id)).scalar() or 0

    def total_units(self) -> int:
        """Sum of stock across the catalog."""
        return int(self.session.query(func.coalesce(func.sum(Book.stock), 0)).scalar() or 0)

    def inventory_value(self) -> Decimal:
        """Sum of price * stock across the catalog."""
        value = self.session.query(func.coalesce(func.sum(Book.price * Book.stock), 0)).scalar()
        return Decimal(str(value or 0)).quantize(Decimal('0.01'))

    def low_stock_books(self) -> List[Book]:
        """Books with stock at or below the threshold (out of stock included)."""
        return self.session.query(Book).filter(
            Book.stock <= self.low_stock_threshold
        ).order_by(Book.stock.asc(), Book.title.asc()).all()

    def out_of_stock_books(self) -> List[Book]:
        return self.session.query(Book).filter(Book.stock == 0).order_by(Book.title.asc()).all()

    def stats(self) -> Dict[str, Any]:
        return {
            'total_books': self.total_books(),
            'total_units': self.total_units(),
            'inventory_value': self.inventory_value(),
            'low_stock_count': len(self.low_stock_books()),
            'out_of_stock_count': len(self.out_of_stock_books()),
            'genres': self.genres(),
        }

    # ===== WRITES =====

    def add_book(self, data: Dict[str, Any]) -> Book:
        """Create a book. Raises ValidationFailedError or DuplicateKeyError (isbn)."""
        values = _clean_book_data(data, partial=False)
        book = Book(**values)
        self.session.add(book)
        commit_or_raise(self.session, duplicate_message=f'ISBN {values.get("isbn")} is already registered')
        logger.info('Book %s created (%s)', book.id, book.title)
        return book

    def update_book(self, book_id, data: Dict[str, Any]) -> Book:
        book = self.get_book(book_id)
        values = _clean_book_data(data, partial=True)
        for field, value in values.items():
            setattr(book, field, value)
        commit_or_raise(self.session, duplicate_message=f'ISBN {values.get("isbn")} is already registered')
        return book

    def delete_book(self, book_id) -> None:
        """Delete a book. Books referenced by any sale item cannot be deleted."""
        book = self.get_book(book_id)

        sold = self.session.query(SaleItem.id).filter(SaleItem.book_id == book.id).first()
        if sold:
            raise ReferentialConflictError(
                f'"{book.title}" appears in recorded sales and cannot be deleted'
            )

        self.session.delete(book)
        commit_or_raise(
            self.session,
            reference_message=f'"{book.title}" appears in recorded sales and cannot be deleted'
        )
        logger.info('Book %s deleted', book_id)

    def adjust_stock(self, book_id, delta: int) -> Book:
        """
        Manual inventory correction: stock becomes max(0, stock + delta).

        The floor is applied inside the UPDATE statement.
        """
        delta = _parse_int(delta, 'delta')
        book = self.get_book(book_id)
        old_stock = book.stock

        new_value = Book.stock + delta
        self.session.query(Book).filter(Book.id == book.id).update(
            {Book.stock: case((new_value < 0, 0), else_=new_value)},
            synchronize_session=False
        )
        commit_or_raise(self.session)

        self.session.refresh(book)
        logger.info('Stock adjusted for book %s: %s -> %s (delta %s)', book.id, old_stock, book.stock, delta)
        return book

    def decrement_stock(self, book_id, quantity: int) -> None:
        """
        Take `quantity` units off a book inside the caller's transaction.

        Conditional on enough stock remaining; zero affected rows raises
        OutOfStockError. Does not commit.
        """
        try:
            affected = self.session.query(Book).filter(
                Book.id == book_id,
                Book.stock >= quantity
            ).update({Book.stock: Book.stock - quantity}, synchronize_session=False)
        except SQLAlchemyError as e:
            raise translate_db_error(e) from e

        if affected == 0:
            book = self.session.get(Book, book_id, populate_existing=True)
            if not book:
                raise NotFoundError(f'Book {book_id} not found')
            raise OutOfStockError(book.title, quantity, book.stock)


# ===== PRIVATE HELPERS =====

def _clean_book_data(data: Dict[str, Any], partial: bool) -> Dict[str, Any]:
    """Validate and normalise incoming book fields."""
    values = {}

    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if isinstance(value, str):
            value = value.strip()
        elif field in TEXT_FIELDS and value is not None:
            raise ValidationFailedError(f'{field.capitalize()} must be a string')

        if field == 'price':
            value = _parse_price(value)
        elif field == 'stock':
            value = _parse_int(value, 'stock')
            if value < 0:
                raise ValidationFailedError('Stock cannot be negative')
        elif field in ('isbn', 'description'):
            value = value or None
        elif not value:
            raise ValidationFailedError(f'{field.capitalize()} is required')

        values[field] = value

    if not partial:
        missing = [f for f in REQUIRED_FIELDS if f not in values]
        if missing:
            raise ValidationFailedError(
                f'Missing required fields: {", ".join(missing)}',
                {'missing': missing}
            )
        values.setdefault('stock', 0)

    return values


def _parse_price(value) -> Decimal:
    try:
        price = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationFailedError(f'Invalid price: {value}')
    if price < 0:
        raise ValidationFailedError('Price cannot be negative')
    return price


def _parse_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationFailedError(f'{field} must be an integer')
    try:
        number = int(str(value).strip())
    except (ValueError, TypeError):
        raise ValidationFailedError(f'{field} must be an integer')
    return number
