"""
Sale Draft Service - in-memory cart for the point of sale.

The draft never touches the database: it snapshots book prices when lines are
added and is serialised into the caller's Flask session between requests.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Dict, Any, List
from app.models import PaymentMethod
from app.exceptions import OutOfStockError, ValidationFailedError

CENTS = Decimal('0.01')
DEFAULT_TAX_RATE = Decimal('0.08')


def money(value) -> Decimal:
    """Round to cents, half up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class DraftLine:
    book_id: int
    title: str
    author: str
    unit_price: Decimal
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'book_id': self.book_id,
            'title': self.title,
            'author': self.author,
            'unit_price': str(self.unit_price),
            'quantity': self.quantity,
            'subtotal': str(self.subtotal),
        }


class DraftSale:
    """
    Cart being assembled at the till.

    Totals are derived on every read:
        subtotal = sum of line subtotals
        discount_amount = subtotal * discount / 100
        tax = subtotal * tax_rate
        total = subtotal - discount_amount + tax
    """

    def __init__(self, catalog, tax_rate: Decimal = DEFAULT_TAX_RATE):
        self.catalog = catalog
        self.tax_rate = Decimal(str(tax_rate))
        self.lines: Dict[int, DraftLine] = {}
        self.customer_id: Optional[int] = None
        self.customer_name: Optional[str] = None
        self.payment_method: str = PaymentMethod.CASH.value
        self.discount: Decimal = Decimal('0.00')
        self.notes: Optional[str] = None

    # ===== LINES =====

    def add_item(self, book_id: int, qty: int = 1) -> DraftLine:
        """
        Add `qty` units of a book, merging into an existing line.

        The cumulative quantity may not exceed the book's current stock; on
        failure the draft is left unchanged.
        """
        if qty is None or qty <= 0:
            raise ValidationFailedError('Quantity must be greater than 0')

        book = self.catalog.get_book(book_id)
        line = self.lines.get(book.id)
        requested = qty + (line.quantity if line else 0)

        if requested > book.stock:
            raise OutOfStockError(book.title, requested, book.stock)

        if line:
            line.quantity = requested
        else:
            line = DraftLine(
                book_id=book.id,
                title=book.title,
                author=book.author,
                unit_price=money(book.price),
                quantity=qty,
            )
            self.lines[book.id] = line
        return line

    def remove_item(self, book_id: int) -> None:
        self.lines.pop(book_id, None)

    def set_quantity(self, book_id: int, qty: int) -> None:
        """Set a line's quantity; zero or less removes it. Unknown ids are ignored."""
        if qty <= 0:
            self.remove_item(book_id)
            return
        line = self.lines.get(book_id)
        if line:
            line.quantity = qty

    @property
    def items(self) -> List[DraftLine]:
        return list(self.lines.values())

    def is_empty(self) -> bool:
        return not self.lines

    # ===== HEADER FIELDS =====

    def set_customer(self, customer_id: Optional[int] = None, customer_name: Optional[str] = None) -> None:
        self.customer_id = customer_id
        self.customer_name = (customer_name or '').strip() or None

    def set_payment_method(self, method: str) -> None:
        try:
            self.payment_method = PaymentMethod(method).value
        except ValueError:
            allowed = [m.value for m in PaymentMethod]
            raise ValidationFailedError(f'Invalid payment method: {method}', {'allowed': allowed})

    def set_discount(self, percent) -> None:
        """Discount percentage, clamped to 0-100 and kept to two decimals like the stored column."""
        try:
            value = Decimal(str(percent))
        except (InvalidOperation, ValueError, TypeError):
            raise ValidationFailedError(f'Invalid discount: {percent}')
        if not value.is_finite():
            raise ValidationFailedError(f'Invalid discount: {percent}')
        self.discount = min(max(value, Decimal('0')), Decimal('100')).quantize(CENTS, rounding=ROUND_HALF_UP)

    def set_notes(self, notes: Optional[str]) -> None:
        self.notes = notes or None

    # ===== TOTALS =====

    @property
    def subtotal(self) -> Decimal:
        return money(sum((line.subtotal for line in self.lines.values()), Decimal('0')))

    @property
    def discount_amount(self) -> Decimal:
        return money(self.subtotal * self.discount / Decimal('100'))

    @property
    def tax(self) -> Decimal:
        return money(self.subtotal * self.tax_rate)

    @property
    def total(self) -> Decimal:
        return money(self.subtotal - self.discount_amount + self.tax)

    @property
    def items_count(self) -> int:
        return sum(line.quantity for line in self.lines.values())

    def clear(self) -> None:
        """Reset to an empty cash sale with no discount."""
        self.lines = {}
        self.customer_id = None
        self.customer_name = None
        self.payment_method = PaymentMethod.CASH.value
        self.discount = Decimal('0.00')
        self.notes = None

    # ===== SESSION ROUND TRIP =====

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [line.to_dict() for line in self.lines.values()],
            'customer_id': self.customer_id,
            'customer_name': self.customer_name,
            'payment_method': self.payment_method,
            'discount': str(self.discount),
            'notes': self.notes,
            'items_count': self.items_count,
            'subtotal': str(self.subtotal),
            'discount_amount': str(self.discount_amount),
            'tax': str(self.tax),
            'total': str(self.total),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], catalog, tax_rate: Decimal = DEFAULT_TAX_RATE) -> 'DraftSale':
        """Rebuild a draft stored with to_dict(). Derived totals are recomputed."""
        draft = cls(catalog, tax_rate)
        if not data:
            return draft

        for item in data.get('items', []):
            line = DraftLine(
                book_id=int(item['book_id']),
                title=item.get('title', ''),
                author=item.get('author', ''),
                unit_price=Decimal(item['unit_price']),
                quantity=int(item['quantity']),
            )
            draft.lines[line.book_id] = line

        draft.customer_id = data.get('customer_id')
        draft.customer_name = data.get('customer_name')
        draft.payment_method = data.get('payment_method') or PaymentMethod.CASH.value
        draft.set_discount(data.get('discount') or '0')
        draft.notes = data.get('notes')
        return draft

