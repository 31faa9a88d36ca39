"""Abandoned cart models (reservation ledger)."""
import enum
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base


class CartStatus(enum.Enum):
    """Abandoned cart status enum."""
    ABANDONED = "abandoned"
    RECOVERED = "recovered"
    EXPIRED = "expired"


class AbandonedCart(Base):
    """
    Cart left behind by a customer. Only carts in ABANDONED status reserve stock.
    
    item_count and cart_value are derived from the items and must always match
    them; see reservation_repair_service.recalculate_cart_totals.
    """
    
    __tablename__ = 'abandoned_cart'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    cart_number = Column(String(32), nullable=False, unique=True)
    seller_id = Column(Integer, ForeignKey('seller.id'), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    status = Column(
        Enum(CartStatus, name='cart_status',
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=CartStatus.ABANDONED,
        index=True
    )
    item_count = Column(Integer, nullable=False, default=0)
    cart_value = Column(Numeric(12, 2), nullable=False, default=0)
    version_id = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    items = relationship('AbandonedCartItem', back_populates='cart', cascade='all, delete-orphan',
                         order_by='AbandonedCartItem.id')
    
    __mapper_args__ = {'version_id_col': version_id}
    
    def __repr__(self):
        return f"<AbandonedCart(id={self.id}, status={self.status.value}, items={self.item_count})>"
    
    def to_dict(self):
        return {
            'id': self.id,
            'cart_number': self.cart_number,
            'seller_id': self.seller_id,
            'customer_name': self.customer_name,
            'customer_email': self.customer_email,
            'status': self.status.value,
            'item_count': self.item_count,
            'cart_value': float(self.cart_value or Decimal('0')),
            'items': [item.to_dict() for item in self.items],
        }


class AbandonedCartItem(Base):
    """Reserved line of an abandoned cart."""
    
    __tablename__ = 'abandoned_cart_item'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    cart_id = Column(Integer, ForeignKey('abandoned_cart.id'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('product.id'), nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    
    cart = relationship('AbandonedCart', back_populates='items')
    product = relationship('Product')
    
    def __repr__(self):
        return f"<AbandonedCartItem(id={self.id}, product_id={self.product_id}, qty={self.quantity})>"
    
    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'unit_price': float(self.unit_price),
            'total_price': float(self.total_price),
        }
