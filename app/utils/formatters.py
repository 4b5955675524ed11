"""
Formatting helpers for JSON responses.
Money goes out as a two-decimal string, dates as ISO 8601.
"""
from decimal import Decimal
from datetime import date, datetime
from typing import Any, Dict, Optional


def jsonable(value: Any) -> Any:
    """Recursively convert Decimals and dates inside dicts/lists."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value


def book_to_dict(book) -> Dict[str, Any]:
    return {
        'id': book.id,
        'title': book.title,
        'author': book.author,
        'isbn': book.isbn,
        'genre': book.genre,
        'price': jsonable(book.price),
        'stock': book.stock,
        'description': book.description,
        'created_at': jsonable(book.created_at),
        'updated_at': jsonable(book.updated_at),
    }


def customer_to_dict(customer, summary: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    data = {
        'id': customer.id,
        'name': customer.name,
        'email': customer.email,
        'phone': customer.phone,
        'address': customer.address,
        'created_at': jsonable(customer.created_at),
        'updated_at': jsonable(customer.updated_at),
    }
    if summary is not None:
        data.update(jsonable(summary))
    return data


def sale_to_dict(sale, include_items: bool = True) -> Dict[str, Any]:
    data = {
        'id': sale.id,
        'customer_id': sale.customer_id,
        'customer_name': sale.customer_name,
        'subtotal': jsonable(sale.subtotal),
        'discount': jsonable(sale.discount),
        'discount_amount': jsonable(sale.discount_amount),
        'tax': jsonable(sale.tax),
        'total': jsonable(sale.total),
        'payment_method': sale.payment_method,
        'status': sale.status,
        'notes': sale.notes,
        'items_count': sale.items_count,
        'created_at': jsonable(sale.created_at),
    }
    if include_items:
        data['items'] = [
            {
                'id': item.id,
                'book_id': item.book_id,
                'title': item.book.title if item.book else None,
                'author': item.book.author if item.book else None,
                'quantity': item.quantity,
                'unit_price': jsonable(item.unit_price),
                'total_price': jsonable(item.total_price),
            }
            for item in sale.items
        ]
    return data
