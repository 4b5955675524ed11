"""Customers blueprint - customer records and purchase history (JSON)."""
from flask import Blueprint, request, jsonify, current_app
from typing import Tuple
from app.database import get_session
from app.middleware import require_admin
from app.services.customer_service import CustomerDirectory
from app.utils.formatters import customer_to_dict, sale_to_dict, jsonable
from app.utils.request_args import json_body, pagination_args, sort_args

customers_bp = Blueprint('customers', __name__, url_prefix='/customers')


def _directory() -> CustomerDirectory:
    return CustomerDirectory(
        get_session(),
        new_customer_days=current_app.config.get('NEW_CUSTOMER_DAYS', 30),
        regular_min_purchases=current_app.config.get('REGULAR_CUSTOMER_MIN_PURCHASES', 3),
    )


@customers_bp.route('', methods=['GET'])
@require_admin
def list_customers():
    """List customers; q searches name, email and phone."""
    page, per_page = pagination_args()
    sort, order = sort_args('name')
    customers, total = _directory().list_customers(
        query=request.args.get('q', ''),
        sort=sort,
        order=order,
        page=page,
        per_page=per_page,
    )
    return jsonify({
        'items': [customer_to_dict(c) for c in customers],
        'total': total,
        'page': page,
        'per_page': per_page,
    })


@customers_bp.route('', methods=['POST'])
@require_admin
def create_customer() -> Tuple:
    customer = _directory().add_customer(json_body())
    return jsonify(customer_to_dict(customer)), 201


@customers_bp.route('/<int:customer_id>', methods=['GET'])
@require_admin
def view_customer(customer_id: int):
    """Customer record plus purchase count, total spent, last purchase and regular flag."""
    directory = _directory()
    customer = directory.get_customer(customer_id)
    return jsonify(customer_to_dict(customer, directory.purchase_summary(customer.id)))


@customers_bp.route('/<int:customer_id>', methods=['PUT'])
@require_admin
def update_customer(customer_id: int):
    return jsonify(customer_to_dict(_directory().update_customer(customer_id, json_body())))


@customers_bp.route('/<int:customer_id>', methods=['DELETE'])
@require_admin
def delete_customer(customer_id: int):
    _directory().delete_customer(customer_id)
    return jsonify({'status': 'ok', 'deleted': customer_id})


@customers_bp.route('/<int:customer_id>/history', methods=['GET'])
@require_admin
def history(customer_id: int):
    sales = _directory().history(customer_id)
    return jsonify({'items': [sale_to_dict(s, include_items=False) for s in sales]})


@customers_bp.route('/stats', methods=['GET'])
@require_admin
def stats():
    directory = _directory()
    data = directory.stats(current_app.config.get('TOP_LIST_LIMIT', 10))
    data['recent'] = [customer_to_dict(c) for c in directory.new_customers()]
    return jsonify(jsonable(data))
