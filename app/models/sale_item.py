"""Sale Item model."""
from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class SaleItem(Base):
    """Sale line (detalle de venta) with the unit price frozen at sale time."""

    __tablename__ = 'sale_items'

    id = Column(Integer, primary_key=True, autoincrement=True)
    sale_id = Column(Integer, ForeignKey('sales.id', ondelete='CASCADE'), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey('books.id', ondelete='RESTRICT'), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    sale = relationship('Sale', back_populates='items')
    book = relationship('Book')

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_sale_items_quantity_positive'),
        CheckConstraint('unit_price >= 0', name='ck_sale_items_unit_price_non_negative'),
        CheckConstraint('total_price >= 0', name='ck_sale_items_total_price_non_negative'),
    )

    def __repr__(self):
        return f"<SaleItem(id={self.id}, book_id={self.book_id}, quantity={self.quantity})>"
