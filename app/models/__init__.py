"""Models package - exports all SQLAlchemy models."""
from app.models.admin import Admin
from app.models.book import Book
from app.models.customer import Customer
from app.models.sale import Sale, SaleStatus, PaymentMethod
from app.models.sale_item import SaleItem

__all__ = [
    'Admin',
    'Book', 'Customer',
    'Sale', 'SaleStatus', 'PaymentMethod', 'SaleItem',
]
