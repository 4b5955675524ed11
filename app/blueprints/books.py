"""Books blueprint - catalog and inventory endpoints (JSON)."""
from flask import Blueprint, jsonify, request, current_app
from typing import Tuple
from app.database import get_session
from app.middleware import require_admin
from app.services.catalog_service import BookCatalog
from app.utils.formatters import book_to_dict, jsonable
from app.utils.request_args import json_body, pagination_args, sort_args, int_value
from app.exceptions import ValidationFailedError

books_bp = Blueprint('books', __name__, url_prefix='/books')


def _catalog() -> BookCatalog:
    return BookCatalog(get_session(), current_app.config.get('LOW_STOCK_THRESHOLD', 2))


@books_bp.route('', methods=['GET'])
@require_admin
def list_books():
    """List books with search (q), genre filter, sort/order and pagination."""
    page, per_page = pagination_args()
    sort, order = sort_args('title')
    books, total = _catalog().list_books(
        query=request.args.get('q', ''),
        genre=request.args.get('genre', '').strip(),
        sort=sort,
        order=order,
        page=page,
        per_page=per_page,
    )
    return jsonify({
        'items': [book_to_dict(b) for b in books],
        'total': total,
        'page': page,
        'per_page': per_page,
    })


@books_bp.route('', methods=['POST'])
@require_admin
def create_book() -> Tuple:
    book = _catalog().add_book(json_body())
    current_app.logger.info(f"Book created: {book.id} {book.title}")
    return jsonify(book_to_dict(book)), 201


@books_bp.route('/<int:book_id>', methods=['GET'])
@require_admin
def get_book(book_id: int):
    return jsonify(book_to_dict(_catalog().get_book(book_id)))


@books_bp.route('/<int:book_id>', methods=['PUT'])
@require_admin
def update_book(book_id: int):
    return jsonify(book_to_dict(_catalog().update_book(book_id, json_body())))


@books_bp.route('/<int:book_id>', methods=['DELETE'])
@require_admin
def delete_book(book_id: int):
    _catalog().delete_book(book_id)
    return jsonify({'status': 'ok', 'deleted': book_id})


@books_bp.route('/<int:book_id>/stock', methods=['POST'])
@require_admin
def adjust_stock(book_id: int):
    """Manual stock correction: {"delta": n}. Stock never goes below zero."""
    data = json_body()
    if 'delta' not in data:
        raise ValidationFailedError('delta is required')
    book = _catalog().adjust_stock(book_id, int_value(data['delta'], 'delta'))
    return jsonify(book_to_dict(book))


@books_bp.route('/stats', methods=['GET'])
@require_admin
def stats():
    catalog = _catalog()
    data = catalog.stats()
    data['low_stock'] = [book_to_dict(b) for b in catalog.low_stock_books()]
    data['out_of_stock'] = [book_to_dict(b) for b in catalog.out_of_stock_books()]
    return jsonify(jsonable(data))


@books_bp.route('/genres', methods=['GET'])
@require_admin
def genres():
    return jsonify({'genres': _catalog().genres()})
