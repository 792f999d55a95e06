from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    composition = Column(Text, nullable=False, default="")
    price = Column(Integer, nullable=False)  # Smallest currency unit
    img_path = Column(String(500))  # Relative to the public storage disk
    nutritional_id = Column(Integer, ForeignKey("nutritionals.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Relationships
    nutritional = relationship("Nutritional", back_populates="product", uselist=False)
    reviews = relationship("Review", back_populates="product")
    order_products = relationship("OrderProduct", back_populates="product")
