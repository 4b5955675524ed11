"""
Unit tests for the in-memory draft sale (cart).
"""

import pytest
from decimal import Decimal
from types import SimpleNamespace
from app.exceptions import NotFoundError, OutOfStockError, ValidationFailedError
from app.services.sale_draft_service import DraftSale


class FakeCatalog:
    """Catalog stand-in holding books in a dict."""

    def __init__(self, *books):
        self.books = {b.id: b for b in books}

    def get_book(self, book_id):
        if book_id not in self.books:
            raise NotFoundError(f'Book {book_id} not found')
        return self.books[book_id]


def make_book(book_id, price, stock, title=None):
    return SimpleNamespace(
        id=book_id,
        title=title or f'Book {book_id}',
        author='Author',
        price=Decimal(price),
        stock=stock
    )


@pytest.fixture
def b1():
    return make_book(1, '10.00', 10, 'B1')


@pytest.fixture
def b2():
    return make_book(2, '15.50', 3, 'B2')


@pytest.fixture
def cart(b1, b2):
    return DraftSale(FakeCatalog(b1, b2), Decimal('0.08'))


class TestDraftTotals:
    """Derived subtotal, discount, tax and total."""

    def test_empty_cart_totals_are_zero(self, cart):
        assert cart.is_empty()
        assert cart.subtotal == Decimal('0.00')
        assert cart.tax == Decimal('0.00')
        assert cart.discount_amount == Decimal('0.00')
        assert cart.total == Decimal('0.00')

    def test_three_units_with_ten_percent_discount(self, cart):
        cart.add_item(1, 3)
        cart.set_discount(10)

        assert cart.subtotal == Decimal('30.00')
        assert cart.discount_amount == Decimal('3.00')
        assert cart.tax == Decimal('2.40')
        assert cart.total == Decimal('29.40')

    def test_total_formula_holds(self, cart):
        cart.add_item(1, 2)
        cart.add_item(2, 1)
        cart.set_discount(25)

        subtotal = Decimal('10.00') * 2 + Decimal('15.50')
        assert cart.subtotal == subtotal
        expected = subtotal * (1 - Decimal('25') / 100) + subtotal * Decimal('0.08')
        assert cart.total == expected.quantize(Decimal('0.01'))

    def test_tax_rounds_half_up_to_cents(self):
        cart = DraftSale(FakeCatalog(make_book(7, '19.99', 5)), Decimal('0.08'))
        cart.add_item(7)

        # 19.99 * 0.08 = 1.5992
        assert cart.tax == Decimal('1.60')
        assert cart.total == Decimal('21.59')

    def test_tax_rate_is_configurable(self, b1):
        cart = DraftSale(FakeCatalog(b1), Decimal('0.21'))
        cart.add_item(1, 1)

        assert cart.tax == Decimal('2.10')
        assert cart.total == Decimal('12.10')

    def test_subtotal_tracks_add_remove_set_sequence(self, cart):
        cart.add_item(1, 2)
        cart.add_item(2, 2)
        cart.set_quantity(1, 5)
        cart.remove_item(2)
        cart.add_item(2, 1)

        expected = sum(line.unit_price * line.quantity for line in cart.items)
        assert cart.subtotal == expected == Decimal('65.50')
        assert cart.items_count == 6


class TestDraftLines:
    """Adding, merging and removing lines."""

    def test_add_item_snapshots_price_and_title(self, cart, b1):
        line = cart.add_item(1, 2)
        b1.price = Decimal('99.00')

        assert line.unit_price == Decimal('10.00')
        assert line.title == 'B1'
        assert cart.subtotal == Decimal('20.00')

    def test_add_item_merges_into_existing_line(self, cart):
        cart.add_item(1, 2)
        cart.add_item(1, 3)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 5

    def test_add_beyond_stock_raises_and_leaves_cart_unchanged(self, cart, b2):
        with pytest.raises(OutOfStockError) as exc:
            cart.add_item(2, 5)

        assert exc.value.requested == 5
        assert exc.value.available == 3
        assert cart.is_empty()
        assert b2.stock == 3

    def test_cumulative_quantity_is_checked_against_stock(self, cart):
        cart.add_item(2, 2)

        with pytest.raises(OutOfStockError):
            cart.add_item(2, 2)

        assert cart.items[0].quantity == 2

    def test_unknown_book_raises_not_found(self, cart):
        with pytest.raises(NotFoundError):
            cart.add_item(999)
        assert cart.is_empty()

    @pytest.mark.parametrize('qty', [0, -1])
    def test_non_positive_quantity_is_rejected(self, cart, qty):
        with pytest.raises(ValidationFailedError):
            cart.add_item(1, qty)

    def test_set_quantity_zero_removes_line(self, cart):
        cart.add_item(1, 3)
        cart.set_quantity(1, 0)

        assert cart.is_empty()
        assert cart.total == Decimal('0.00')

    def test_set_quantity_does_not_revalidate_stock(self, cart):
        cart.add_item(2, 1)
        cart.set_quantity(2, 10)

        assert cart.items[0].quantity == 10

    def test_set_quantity_unknown_book_is_noop(self, cart):
        cart.add_item(1, 1)
        cart.set_quantity(2, 4)

        assert [line.book_id for line in cart.items] == [1]

    def test_remove_item_drops_whole_line(self, cart):
        cart.add_item(1, 4)
        cart.remove_item(1)

        assert cart.is_empty()


class TestDraftHeader:
    """Customer, payment method, discount and notes."""

    @pytest.mark.parametrize('given, expected', [
        (150, Decimal('100')),
        (-5, Decimal('0')),
        ('12.5', Decimal('12.5')),
        ('12.345', Decimal('12.35')),
        ('33.333', Decimal('33.33')),
    ])
    def test_discount_is_clamped(self, cart, given, expected):
        cart.set_discount(given)
        assert cart.discount == expected

    def test_invalid_discount_is_rejected(self, cart):
        with pytest.raises(ValidationFailedError):
            cart.set_discount('ten')

    def test_payment_method_must_be_known(self, cart):
        cart.set_payment_method('card')
        assert cart.payment_method == 'card'

        with pytest.raises(ValidationFailedError):
            cart.set_payment_method('cheque')
        assert cart.payment_method == 'card'

    def test_clear_resets_to_empty_cash_sale(self, cart):
        cart.add_item(1, 2)
        cart.set_customer(5, 'Ana')
        cart.set_payment_method('digital')
        cart.set_discount(20)
        cart.set_notes('gift wrap')

        cart.clear()

        assert cart.is_empty()
        assert cart.payment_method == 'cash'
        assert cart.discount == Decimal('0')
        assert cart.customer_id is None
        assert cart.customer_name is None
        assert cart.notes is None

    def test_session_round_trip_keeps_lines_and_header(self, cart, b1, b2):
        cart.add_item(1, 3)
        cart.add_item(2, 1)
        cart.set_customer(None, '  Walk-in  ')
        cart.set_payment_method('card')
        cart.set_discount(10)

        restored = DraftSale.from_dict(cart.to_dict(), FakeCatalog(b1, b2), Decimal('0.08'))

        assert restored.to_dict() == cart.to_dict()
        assert restored.customer_name == 'Walk-in'
        assert restored.total == cart.total

    def test_from_empty_session_gives_empty_cart(self, b1):
        restored = DraftSale.from_dict(None, FakeCatalog(b1))
        assert restored.is_empty()
        assert restored.payment_method == 'cash'
