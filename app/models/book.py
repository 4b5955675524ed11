"""Book model."""
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, CheckConstraint, Index
from sqlalchemy.sql import func
from app.database import Base


class Book(Base):
    """Book in the catalog, with its on-hand stock."""

    __tablename__ = 'books'

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False)
    isbn = Column(String(20), unique=True, nullable=True)
    genre = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0, server_default='0')
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('price >= 0', name='ck_books_price_non_negative'),
        CheckConstraint('stock >= 0', name='ck_books_stock_non_negative'),
        Index('ix_books_genre', 'genre'),
        Index('ix_books_author', 'author'),
        Index('ix_books_title_author', 'title', 'author'),
    )

    def __repr__(self):
        return f"<Book(id={self.id}, title='{self.title}', stock={self.stock})>"

    @property
    def inventory_value(self):
        return (self.price or 0) * (self.stock or 0)
