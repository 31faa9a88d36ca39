"""Seller model."""
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from marketplace.database import Base


class Seller(Base):
    """Seller - owner of listed products (reference row for scoping)."""
    
    __tablename__ = 'seller'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    def __repr__(self):
        return f"<Seller(id={self.id}, name='{self.name}')>"
