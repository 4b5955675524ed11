"""Parsing of query-string and JSON body arguments for the API blueprints."""
from datetime import date
from typing import Any, Dict, Optional, Tuple
from flask import request, current_app
from app.exceptions import ValidationFailedError


def json_body() -> Dict[str, Any]:
    """Request JSON object, or a 400 if the body is not a JSON object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationFailedError('Request body must be a JSON object')
    return data


def date_arg(name: str) -> Optional[date]:
    """ISO date (YYYY-MM-DD) from the query string."""
    raw = request.args.get(name, '').strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationFailedError(f'Invalid date for {name}: {raw}. Use YYYY-MM-DD')


def date_window() -> Tuple[Optional[date], Optional[date]]:
    start, end = date_arg('start'), date_arg('end')
    if start and end and start > end:
        raise ValidationFailedError('start must be on or before end')
    return start, end


def int_value(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationFailedError(f'{name} must be an integer')
    try:
        return int(str(value).strip())
    except (ValueError, TypeError):
        raise ValidationFailedError(f'{name} must be an integer')


def pagination_args() -> Tuple[int, int]:
    """page (1-based) and per_page, bounded by MAX_PAGE_SIZE."""
    page = int_value(request.args.get('page', 1), 'page')
    per_page = int_value(
        request.args.get('per_page', current_app.config.get('DEFAULT_PAGE_SIZE', 20)),
        'per_page'
    )
    if page < 1 or per_page < 1:
        raise ValidationFailedError('page and per_page must be positive')
    return page, min(per_page, current_app.config.get('MAX_PAGE_SIZE', 100))


def sort_args(default: str) -> Tuple[str, str]:
    sort = request.args.get('sort', default).strip() or default
    order = request.args.get('order', 'asc').strip().lower()
    if order not in ('asc', 'desc'):
        raise ValidationFailedError('order must be asc or desc')
    return sort, order
