"""Order and OrderItem models (demand ledger)."""
import enum
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base


class OrderStatus(enum.Enum):
    """Order status enum."""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


# Capacity still committed to these orders
IN_FLIGHT_STATUSES = (OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.SHIPPED)


class Order(Base):
    """Customer order placed with a seller."""
    
    __tablename__ = 'orders'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(32), nullable=False, unique=True)
    seller_id = Column(Integer, ForeignKey('seller.id'), nullable=False, index=True)
    status = Column(
        Enum(OrderStatus, name='order_status',
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan',
                         order_by='OrderItem.id')
    
    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status={self.status.value})>"
    
    def to_dict(self):
        return {
            'id': self.id,
            'order_number': self.order_number,
            'seller_id': self.seller_id,
            'status': self.status.value,
            'items': [
                {'product_id': item.product_id, 'quantity': item.quantity,
                 'unit_price': float(item.unit_price)}
                for item in self.items
            ],
        }


class OrderItem(Base):
    """Order line; immutable once the order is placed."""
    
    __tablename__ = 'order_item'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey('orders.id'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('product.id'), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)
    
    order = relationship('Order', back_populates='items')
    product = relationship('Product')
    
    def __repr__(self):
        return f"<OrderItem(id={self.id}, product_id={self.product_id}, qty={self.quantity})>"
