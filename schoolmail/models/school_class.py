"""Class model definitions."""

from sqlalchemy import Column, Integer, String
from schoolmail.database import Base


class SchoolClass(Base):
    """Represents a named group of users."""
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
