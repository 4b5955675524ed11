"""Sale model."""
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base
import enum


class SaleStatus(str, enum.Enum):
    """Sale status. Only completed sales are produced by checkout."""
    COMPLETED = 'completed'


class PaymentMethod(str, enum.Enum):
    """Accepted payment methods at the till."""
    CASH = 'cash'
    CARD = 'card'
    DIGITAL = 'digital'


class Sale(Base):
    """Sale (venta confirmada). Immutable once recorded."""

    __tablename__ = 'sales'

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey('customers.id', ondelete='SET NULL'), nullable=True)
    customer_name = Column(String(255), nullable=True)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False, default=0, server_default='0')
    # Discount percentage (0-100) applied to the subtotal
    discount = Column(Numeric(5, 2), nullable=False, default=0, server_default='0')
    total = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(50), nullable=False, default=PaymentMethod.CASH.value, server_default='cash')
    status = Column(String(20), nullable=False, default=SaleStatus.COMPLETED.value, server_default='completed')
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    customer = relationship('Customer', back_populates='sales')
    items = relationship('SaleItem', back_populates='sale', cascade='all, delete-orphan', passive_deletes=True)

    __table_args__ = (
        CheckConstraint('subtotal >= 0', name='ck_sales_subtotal_non_negative'),
        CheckConstraint('tax >= 0', name='ck_sales_tax_non_negative'),
        CheckConstraint('discount >= 0 AND discount <= 100', name='ck_sales_discount_range'),
        CheckConstraint('total >= 0', name='ck_sales_total_non_negative'),
        CheckConstraint("payment_method IN ('cash', 'card', 'digital')", name='ck_sales_payment_method'),
        Index('ix_sales_created_at', 'created_at'),
        Index('ix_sales_customer_id', 'customer_id'),
        Index('ix_sales_created_payment', 'created_at', 'payment_method'),
    )

    @property
    def discount_amount(self):
        """Money taken off the subtotal by the discount percentage."""
        amount = Decimal(self.subtotal or 0) * Decimal(self.discount or 0) / Decimal('100')
        return amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)

    @property
    def items_count(self):
        return sum(item.quantity for item in self.items)

    def __repr__(self):
        return f"<Sale(id={self.id}, total={self.total}, status={self.status})>"
