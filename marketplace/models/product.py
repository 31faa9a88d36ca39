"""Product model."""
import enum
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.database import Base


class ProductAvailability(enum.Enum):
    """Denormalized availability flag used by the public catalog."""
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class Product(Base):
    """
    Product listed by a seller.
    
    stock_quantity is the authoritative capacity; availability is derived from
    it minus demand and persisted so the storefront can filter without
    recomputing. version_id guards read-modify-write races.
    """
    
    __tablename__ = 'product'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    seller_id = Column(Integer, ForeignKey('seller.id'), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey('category.id'), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(64), nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    low_stock_threshold = Column(Integer, nullable=False, default=5)
    availability = Column(
        Enum(ProductAvailability, name='product_availability',
             values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProductAvailability.UNAVAILABLE,
        index=True
    )
    version_id = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    # Relationships
    seller = relationship('Seller')
    category = relationship('Category')
    
    __mapper_args__ = {'version_id_col': version_id}
    
    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock_quantity})>"
    
    @property
    def is_low_stock(self):
        return self.stock_quantity <= self.low_stock_threshold
    
    def to_dict(self):
        return {
            'id': self.id,
            'seller_id': self.seller_id,
            'category_id': self.category_id,
            'name': self.name,
            'sku': self.sku,
            'price': float(self.price) if self.price is not None else 0.0,
            'active': self.active,
            'stock_quantity': self.stock_quantity,
            'low_stock_threshold': self.low_stock_threshold,
            'availability': self.availability.value if self.availability else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
