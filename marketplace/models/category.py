"""Category and admin-category assignment models."""
from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from marketplace.database import Base


class Category(Base):
    """Category; rows with a parent_id are subcategories."""
    
    __tablename__ = 'category'
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    parent_id = Column(Integer, ForeignKey('category.id'), nullable=True)
    
    parent = relationship('Category', remote_side=[id], backref='subcategories')
    
    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"


class AdminCategory(Base):
    """Categories an admin is assigned to manage."""
    
    __tablename__ = 'admin_category'
    __table_args__ = (
        UniqueConstraint('admin_id', 'category_id', name='uq_admin_category'),
    )
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    admin_id = Column(Integer, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey('category.id'), nullable=False)
    
    category = relationship('Category')
