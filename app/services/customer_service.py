"""Customer directory: customer records and their purchase aggregates."""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, List, Dict, Any, Tuple
from sqlalchemy import func, or_, desc
from app.models import Customer, Sale
from app.exceptions import NotFoundError, ValidationFailedError
from app.database import commit_or_raise

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    'name': Customer.name,
    'email': Customer.email,
    'created_at': Customer.created_at,
}

EDITABLE_FIELDS = ('name', 'email', 'phone', 'address')


class CustomerDirectory:
    """Store handle over the `customers` table."""

    def __init__(self, session, new_customer_days: int = 30, regular_min_purchases: int = 3):
        self.session = session
        self.new_customer_days = new_customer_days
        self.regular_min_purchases = regular_min_purchases

    def find_customer(self, customer_id) -> Optional[Customer]:
        return self.session.get(Customer, customer_id)

    def get_customer(self, customer_id) -> Customer:
        customer = self.find_customer(customer_id)
        if not customer:
            raise NotFoundError(f'Customer {customer_id} not found')
        return customer

    def get_by_name(self, name: str) -> Optional[Customer]:
        """Exact, case-insensitive name lookup (used when the till types a name)."""
        if not name:
            return None
        return self.session.query(Customer).filter(
            func.lower(Customer.name) == name.strip().lower()
        ).order_by(Customer.id.asc()).first()

    def list_customers(
        self,
        query: str = '',
        sort: str = 'name',
        order: str = 'asc',
        page: Optional[int] = None,
        per_page: Optional[int] = None
    ) -> Tuple[List[Customer], int]:
        """Search name/email/phone, sort and paginate."""
        q = self.session.query(Customer)

        if query:
            pattern = f'%{query.strip().lower()}%'
            q = q.filter(or_(
                func.lower(Customer.name).like(pattern),
                func.lower(Customer.email).like(pattern),
                func.coalesce(Customer.phone, '').like(pattern),
            ))

        total = q.count()

        column = SORTABLE_FIELDS.get(sort)
        if column is None:
            raise ValidationFailedError(
                f'Cannot sort by "{sort}"',
                {'allowed': sorted(SORTABLE_FIELDS)}
            )
        q = q.order_by(column.desc() if order == 'desc' else column.asc(), Customer.id.asc())

        if page and per_page:
            q = q.offset((page - 1) * per_page).limit(per_page)

        return q.all(), total

    def add_customer(self, data: Dict[str, Any]) -> Customer:
        values = _clean_customer_data(data, partial=False)
        customer = Customer(**values)
        self.session.add(customer)
        commit_or_raise(self.session, duplicate_message=f'Email {values["email"]} is already registered')
        logger.info('Customer %s created', customer.id)
        return customer

    def update_customer(self, customer_id, data: Dict[str, Any]) -> Customer:
        customer = self.get_customer(customer_id)
        values = _clean_customer_data(data, partial=True)
        for field, value in values.items():
            setattr(customer, field, value)
        commit_or_raise(self.session, duplicate_message=f'Email {values.get("email")} is already registered')
        return customer

    def delete_customer(self, customer_id) -> None:
        """Delete a customer. Their sales are kept with customer_id set to NULL."""
        customer = self.get_customer(customer_id)
        self.session.delete(customer)
        commit_or_raise(self.session)
        logger.info('Customer %s deleted', customer_id)

    # ===== PURCHASE AGGREGATES =====

    def purchase_summary(self, customer_id) -> Dict[str, Any]:
        """Purchase count, total spent, last purchase and regular flag."""
        count, spent, last = self.session.query(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total), 0),
            func.max(Sale.created_at),
        ).filter(Sale.customer_id == customer_id).one()

        return {
            'purchase_count': count,
            'total_spent': Decimal(str(spent)).quantize(Decimal('0.01')),
            'last_purchase': last,
            'is_regular': count >= self.regular_min_purchases,
        }

    def is_regular(self, customer_id) -> bool:
        return self.purchase_summary(customer_id)['is_regular']

    def history(self, customer_id) -> List[Sale]:
        """Sales of one customer, newest first."""
        self.get_customer(customer_id)
        return self.session.query(Sale).filter(
            Sale.customer_id == customer_id
        ).order_by(Sale.created_at.desc(), Sale.id.desc()).all()

    def new_customers(self, now: Optional[datetime] = None) -> List[Customer]:
        """Customers created within the last `new_customer_days` days."""
        cutoff = (now or datetime.now()) - timedelta(days=self.new_customer_days)
        return self.session.query(Customer).filter(
            Customer.created_at >= cutoff
        ).order_by(Customer.created_at.desc()).all()

    def top_customers(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Customers ranked by total spent."""
        rows = (
            self.session.query(
                Customer.id.label('customer_id'),
                Customer.name.label('name'),
                Customer.email.label('email'),
                func.count(Sale.id).label('purchase_count'),
                func.sum(Sale.total).label('total_spent'),
            )
            .join(Sale, Sale.customer_id == Customer.id)
            .group_by(Customer.id, Customer.name, Customer.email)
            .order_by(desc('total_spent'), Customer.id.asc())
            .limit(limit)
            .all()
        )
        return [
            {
                'customer_id': row.customer_id,
                'name': row.name,
                'email': row.email,
                'purchase_count': row.purchase_count,
                'total_spent': Decimal(str(row.total_spent or 0)).quantize(Decimal('0.01')),
            }
            for row in rows
        ]

    def regular_customers_count(self) -> int:
        """Customers with at least `regular_min_purchases` sales."""
        regulars = (
            self.session.query(Sale.customer_id)
            .filter(Sale.customer_id.isnot(None))
            .group_by(Sale.customer_id)
            .having(func.count(Sale.id) >= self.regular_min_purchases)
            .subquery()
        )
        return self.session.query(func.count()).select_from(regulars).scalar() or 0

    def stats(self, top_limit: int = 10) -> Dict[str, Any]:
        return {
            'total_customers': self.session.query(func.count(Customer.id)).scalar() or 0,
            'regular_customers': self.regular_customers_count(),
            'new_customers': len(self.new_customers()),
            'top_customers': self.top_customers(top_limit),
        }


def _clean_customer_data(data: Dict[str, Any], partial: bool) -> Dict[str, Any]:
    values = {}
    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if value is not None and not isinstance(value, str):
            raise ValidationFailedError(f'{field.capitalize()} must be a string')
        if isinstance(value, str):
            value = value.strip()
        if field in ('name', 'email'):
            if not value:
                raise ValidationFailedError(f'{field.capitalize()} is required')
            if field == 'email':
                value = value.lower()
                if '@' not in value:
                    raise ValidationFailedError(f'Invalid email: {value}')
        else:
            value = value or None
        values[field] = value

    if not partial:
        missing = [f for f in ('name', 'email') if f not in values]
        if missing:
            raise ValidationFailedError(
                f'Missing required fields: {", ".join(missing)}',
                {'missing': missing}
            )
    return values
