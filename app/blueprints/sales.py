"""Sales blueprint for the point of sale: draft cart, checkout and sale history."""
from decimal import Decimal, InvalidOperation
from flask import Blueprint, jsonify, session, current_app
from typing import Tuple
from app.database import get_session
from app.middleware import require_admin
from app.models import PaymentMethod
from app.services.catalog_service import BookCatalog
from app.services.customer_service import CustomerDirectory
from app.services.sale_draft_service import DraftSale, money
from app.services.sales_service import SalesService
from app.blueprints.metrics import sales_completed_total, checkout_failures_total
from app.utils.formatters import sale_to_dict, jsonable
from app.utils.request_args import json_body, date_window, int_value
from app.exceptions import BookstoreError, ValidationFailedError

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')

DRAFT_SESSION_KEY = 'draft_sale'


def _catalog() -> BookCatalog:
    return BookCatalog(get_session(), current_app.config.get('LOW_STOCK_THRESHOLD', 2))


def get_draft() -> DraftSale:
    """Rebuild the caller's draft from the Flask session."""
    return DraftSale.from_dict(
        session.get(DRAFT_SESSION_KEY),
        _catalog(),
        current_app.config.get('TAX_RATE', Decimal('0.08')),
    )


def save_draft(draft: DraftSale) -> None:
    session[DRAFT_SESSION_KEY] = draft.to_dict()
    session.modified = True


def _parse_money(value, name: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationFailedError(f'{name} must be a number')
    if not amount.is_finite() or amount < 0:
        raise ValidationFailedError(f'{name} must be a non-negative number')
    return money(amount)


def _apply_customer(draft: DraftSale, customer) -> None:
    """
    Attach a customer to the draft.

    Accepts a customer id or a free-text name; a name that matches a stored
    customer links that record, any other name is kept as a walk-in snapshot.
    """
    directory = CustomerDirectory(get_session())
    if isinstance(customer, int) and not isinstance(customer, bool):
        record = directory.get_customer(customer)
        draft.set_customer(record.id, record.name)
        return

    name = str(customer or '').strip()
    record = directory.get_by_name(name)
    if record:
        draft.set_customer(record.id, record.name)
    else:
        draft.set_customer(None, name)


# ===== DRAFT (CART) =====

@sales_bp.route('/draft', methods=['GET'])
@require_admin
def view_draft():
    return jsonify(get_draft().to_dict())


@sales_bp.route('/draft/items', methods=['POST'])
@require_admin
def add_item() -> Tuple:
    """Add {book_id, qty} to the cart. qty defaults to 1."""
    data = json_body()
    if 'book_id' not in data:
        raise ValidationFailedError('book_id is required')

    draft = get_draft()
    draft.add_item(int_value(data['book_id'], 'book_id'), int_value(data.get('qty', 1), 'qty'))
    save_draft(draft)
    return jsonify(draft.to_dict()), 201


@sales_bp.route('/draft/items/<int:book_id>', methods=['PUT'])
@require_admin
def set_quantity(book_id: int):
    data = json_body()
    if 'qty' not in data:
        raise ValidationFailedError('qty is required')

    draft = get_draft()
    draft.set_quantity(book_id, int_value(data['qty'], 'qty'))
    save_draft(draft)
    return jsonify(draft.to_dict())


@sales_bp.route('/draft/items/<int:book_id>', methods=['DELETE'])
@require_admin
def remove_item(book_id: int):
    draft = get_draft()
    draft.remove_item(book_id)
    save_draft(draft)
    return jsonify(draft.to_dict())


@sales_bp.route('/draft', methods=['PUT'])
@require_admin
def update_draft():
    """Set customer, payment method, discount (percent) or notes."""
    data = json_body()
    draft = get_draft()

    if 'customer_id' in data or 'customer_name' in data:
        customer_id = data.get('customer_id')
        if customer_id is not None:
            _apply_customer(draft, int_value(customer_id, 'customer_id'))
        else:
            _apply_customer(draft, data.get('customer_name'))
    if 'payment_method' in data:
        draft.set_payment_method(data['payment_method'])
    if 'discount' in data:
        draft.set_discount(data['discount'])
    if 'notes' in data:
        draft.set_notes(data['notes'])

    save_draft(draft)
    return jsonify(draft.to_dict())


@sales_bp.route('/draft/clear', methods=['POST'])
@require_admin
def clear_draft():
    draft = get_draft()
    draft.clear()
    save_draft(draft)
    return jsonify(draft.to_dict())


# ===== CHECKOUT =====

@sales_bp.route('/checkout', methods=['POST'])
@require_admin
def checkout() -> Tuple:
    """
    Complete the sale in the cart.

    Body: {"amount_paid": "50.00", "customer": <id or name, optional>}.
    amount_paid must cover the total (it defaults to the exact total for
    card and digital payments). Answers with the sale and the change due.
    """
    data = json_body()
    draft = get_draft()

    try:
        if data.get('customer') not in (None, ''):
            _apply_customer(draft, data['customer'])

        if draft.is_empty():
            raise ValidationFailedError('Cannot complete a sale with no items')

        total = draft.total
        if 'amount_paid' in data:
            amount_paid = _parse_money(data['amount_paid'], 'amount_paid')
        elif draft.payment_method != PaymentMethod.CASH.value:
            amount_paid = total
        else:
            raise ValidationFailedError('amount_paid is required for cash payments')

        if amount_paid < total:
            raise ValidationFailedError(
                f'Amount paid {amount_paid} is less than the total {total}',
                {'total': str(total), 'amount_paid': str(amount_paid)}
            )

        sale = SalesService(get_session(), _catalog()).complete_sale(draft)

    except BookstoreError as e:
        checkout_failures_total.labels(reason=type(e).__name__).inc()
        raise

    save_draft(draft)
    sales_completed_total.labels(payment_method=sale.payment_method).inc()
    current_app.logger.info(f"Sale {sale.id} completed, total {sale.total}")

    return jsonify({
        'sale': sale_to_dict(sale),
        'amount_paid': str(amount_paid),
        'change': str(money(amount_paid - sale.total)),
    }), 201


# ===== HISTORY =====

@sales_bp.route('', methods=['GET'])
@require_admin
def list_sales():
    """Sales newest first; optional start/end (YYYY-MM-DD, inclusive)."""
    start, end = date_window()
    sales = SalesService(get_session(), _catalog()).list_sales(start, end)
    return jsonify({
        'items': [sale_to_dict(s, include_items=False) for s in sales],
        'total': len(sales),
    })


@sales_bp.route('/<int:sale_id>', methods=['GET'])
@require_admin
def view_sale(sale_id: int):
    return jsonify(sale_to_dict(SalesService(get_session(), _catalog()).get_sale(sale_id)))


@sales_bp.route('/stats', methods=['GET'])
@require_admin
def stats():
    start, end = date_window()
    service = SalesService(get_session(), _catalog())
    data = service.stats(current_app.config.get('TOP_LIST_LIMIT', 10))
    data['by_date'] = service.sales_by_date(start, end)
    return jsonify(jsonable(data))
