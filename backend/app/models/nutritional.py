from sqlalchemy import Column, Integer
from sqlalchemy.orm import relationship
from app.database import Base


class Nutritional(Base):
    """Macro values of a single product, per 100g."""
    __tablename__ = "nutritionals"

    id = Column(Integer, primary_key=True, index=True)
    proteins = Column(Integer, nullable=False, default=0)
    fats = Column(Integer, nullable=False, default=0)
    carbohydrates = Column(Integer, nullable=False, default=0)

    # Relationships
    product = relationship("Product", back_populates="nutritional", uselist=False)
