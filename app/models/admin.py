"""Administrator marker table."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from app.database import Base


class Admin(Base):
    """
    A user of the hosted auth provider that may read and write every table.

    Presence of a row is the whole authorization model.
    """

    __tablename__ = 'admins'

    user_id = Column(String(64), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Admin(user_id='{self.user_id}')>"
