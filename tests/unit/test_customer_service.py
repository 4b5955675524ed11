"""
Unit tests for the customer directory.
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from app.models import Customer, Sale
from app.exceptions import NotFoundError, ValidationFailedError, DuplicateKeyError


def record_sale(session, customer_id, total, days_ago=0):
    sale = Sale(
        customer_id=customer_id,
        subtotal=Decimal(total),
        tax=Decimal('0.00'),
        total=Decimal(total),
        created_at=datetime.now() - timedelta(days=days_ago)
    )
    session.add(sale)
    session.commit()
    return sale


class TestCustomerWrites:

    def test_add_customer_normalises_email(self, directory, reload):
        customer = directory.add_customer({'name': 'Ana Martínez', 'email': ' Ana@Email.com ', 'phone': ''})

        stored = reload(Customer, customer.id)
        assert stored.email == 'ana@email.com'
        assert stored.phone is None

    @pytest.mark.parametrize('data', [
        {'name': 'Sin email'},
        {'email': 'nombre@falta.com'},
        {'name': 'X', 'email': 'no-at-sign'},
        {'name': 'Ana', 'email': 123},
        {'name': 42, 'email': 'ana@email.com'},
        {'name': 'Ana', 'email': 'ana@email.com', 'phone': 600123456},
        {'name': 'Ana', 'email': 'ana@email.com', 'address': ['Calle Mayor']},
    ])
    def test_invalid_customer_is_rejected(self, directory, data):
        with pytest.raises(ValidationFailedError):
            directory.add_customer(data)

    def test_duplicate_email(self, directory, customer):
        with pytest.raises(DuplicateKeyError):
            directory.add_customer({'name': 'Otro Juan', 'email': customer.email})

    def test_update_customer(self, directory, customer, reload):
        directory.update_customer(customer.id, {'phone': '555-0101'})
        assert reload(Customer, customer.id).phone == '555-0101'

    def test_get_unknown_customer(self, directory):
        with pytest.raises(NotFoundError):
            directory.get_customer(4242)

    def test_delete_customer_keeps_sales(self, directory, customer, session, reload):
        sale = record_sale(session, customer.id, '20.00')

        directory.delete_customer(customer.id)

        assert session.query(Customer).count() == 0
        kept = reload(Sale, sale.id)
        assert kept is not None
        assert kept.customer_id is None


class TestCustomerQueries:

    def test_search_by_name_email_phone(self, directory, customer):
        directory.add_customer({'name': 'María García', 'email': 'maria@email.com', 'phone': '+34 600 234 567'})

        names = lambda q: [c.name for c in directory.list_customers(query=q)[0]]
        assert names('juan') == ['Juan Pérez']
        assert names('maria@') == ['María García']
        assert names('234 567') == ['María García']
        assert len(names('email.com')) == 2

    def test_get_by_name_is_case_insensitive(self, directory, customer):
        assert directory.get_by_name('JUAN PÉREZ'.lower()).id == customer.id
        assert directory.get_by_name('Nadie') is None

    def test_purchase_summary_and_regular_flag(self, directory, customer, session):
        assert directory.purchase_summary(customer.id)['purchase_count'] == 0
        assert directory.is_regular(customer.id) is False

        for total in ('10.00', '20.50', '5.25'):
            record_sale(session, customer.id, total)

        summary = directory.purchase_summary(customer.id)
        assert summary['purchase_count'] == 3
        assert summary['total_spent'] == Decimal('35.75')
        assert summary['last_purchase'] is not None
        assert summary['is_regular'] is True

    def test_history_newest_first(self, directory, customer, session):
        old = record_sale(session, customer.id, '10.00', days_ago=3)
        new = record_sale(session, customer.id, '12.00', days_ago=0)

        assert [s.id for s in directory.history(customer.id)] == [new.id, old.id]

    def test_top_customers_by_spend(self, directory, customer, session):
        other = directory.add_customer({'name': 'Luis Rodríguez', 'email': 'luis@email.com'})
        record_sale(session, customer.id, '10.00')
        record_sale(session, other.id, '50.00')
        record_sale(session, None, '99.00')

        top = directory.top_customers()
        assert [t['name'] for t in top] == ['Luis Rodríguez', 'Juan Pérez']
        assert top[0]['total_spent'] == Decimal('50.00')

    def test_new_customers_window(self, directory, customer):
        assert [c.id for c in directory.new_customers()] == [customer.id]
        later = datetime.now() + timedelta(days=31)
        assert directory.new_customers(now=later) == []

    def test_new_customers_window_edges(self, directory, customer, session, reload):
        now = datetime.now()
        older = directory.add_customer({'name': 'Luis Rodríguez', 'email': 'luis@email.com'})
        reload(Customer, customer.id).created_at = now - timedelta(days=29, hours=23)
        reload(Customer, older.id).created_at = now - timedelta(days=30, hours=1)
        session.commit()

        assert [c.id for c in directory.new_customers(now=now)] == [customer.id]

    def test_created_at_is_local_time(self, directory, reload):
        before = datetime.now()
        created = directory.add_customer({'name': 'Ana', 'email': 'ana@email.com'})
        after = datetime.now()

        assert before <= reload(Customer, created.id).created_at <= after

    def test_regular_customers_count(self, directory, customer, session):
        other = directory.add_customer({'name': 'Luis Rodríguez', 'email': 'luis@email.com'})
        for _ in range(3):
            record_sale(session, customer.id, '10.00')
        record_sale(session, other.id, '10.00')
        record_sale(session, None, '10.00')

        assert directory.regular_customers_count() == 1
        assert directory.stats()['regular_customers'] == 1
