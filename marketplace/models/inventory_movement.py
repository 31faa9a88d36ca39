"""Inventory Movement model."""
import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base


class MovementType(enum.Enum):
    """Inventory movement type enum."""
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"


class InventoryMovement(Base):
    """Append-only audit row for every stock quantity change."""
    
    __tablename__ = 'inventory_movement'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey('product.id'), nullable=False, index=True)
    type = Column(
        Enum(MovementType, name='movement_type',
             values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    quantity = Column(Integer, nullable=False)
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    actor = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    
    product = relationship('Product')
    
    def __repr__(self):
        return f"<InventoryMovement(id={self.id}, product_id={self.product_id}, type={self.type.value}, qty={self.quantity})>"
    
    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'type': self.type.value,
            'quantity': self.quantity,
            'previous_stock': self.previous_stock,
            'new_stock': self.new_stock,
            'reason': self.reason,
            'actor': self.actor,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
