import pytest
from decimal import Decimal
import os

# In-memory SQLite unless a database is provided (e.g. by Docker)
os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('WTF_CSRF_ENABLED', 'false')

from app import create_app
from app.database import db_session, get_session, create_schema, Base
from app.models import Admin, Book, Customer
from app.services.catalog_service import BookCatalog
from app.services.customer_service import CustomerDirectory
from app.services.sale_draft_service import DraftSale
from app.services.sales_service import SalesService

ADMIN_USER_ID = 'auth0|admin-test'


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.Config')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False
    create_schema()
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for testing; every table is emptied afterwards."""
    session = get_session()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    db_session.remove()


@pytest.fixture(scope='function')
def admin(session):
    """Administrator row for ADMIN_USER_ID."""
    admin = Admin(user_id=ADMIN_USER_ID)
    session.add(admin)
    session.commit()
    return admin


@pytest.fixture(scope='function')
def admin_client(client, admin):
    """Test client whose session carries an administrator user id."""
    with client.session_transaction() as sess:
        sess['user_id'] = ADMIN_USER_ID
    return client


@pytest.fixture(scope='function')
def catalog(session):
    return BookCatalog(session, low_stock_threshold=2)


@pytest.fixture(scope='function')
def directory(session):
    return CustomerDirectory(session, new_customer_days=30, regular_min_purchases=3)


@pytest.fixture(scope='function')
def sales_service(session, catalog):
    return SalesService(session, catalog)


@pytest.fixture(scope='function')
def draft(catalog):
    return DraftSale(catalog, Decimal('0.08'))


@pytest.fixture(scope='function')
def book(session):
    """Book priced 10.00 with 10 units in stock."""
    book = Book(
        title='Rayuela',
        author='Julio Cortázar',
        isbn='978-84-376-0498-5',
        genre='Novela',
        price=Decimal('10.00'),
        stock=10
    )
    session.add(book)
    session.commit()
    return book


@pytest.fixture(scope='function')
def scarce_book(session):
    """Book with only 3 units in stock."""
    book = Book(
        title='Ficciones',
        author='Jorge Luis Borges',
        isbn='978-84-206-3367-0',
        genre='Cuento',
        price=Decimal('15.50'),
        stock=3
    )
    session.add(book)
    session.commit()
    return book


@pytest.fixture(scope='function')
def customer(session):
    customer = Customer(
        name='Juan Pérez',
        email='juan.perez@email.com',
        phone='+34 600 123 456',
        address='Calle Mayor 123, Madrid'
    )
    session.add(customer)
    session.commit()
    return customer


@pytest.fixture(scope='function')
def reload(session):
    """Reload a row from the database, bypassing the identity map."""
    def _reload(model, pk):
        return session.get(model, pk, populate_existing=True)
    return _reload
