"""User model definitions."""

from sqlalchemy import Column, Integer, String
from schoolmail.database import Base

USER_ROLES = ('admin', 'parent', 'student')
DEFAULT_ROLE = 'admin'


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=DEFAULT_ROLE)  # admin/parent/student
    # No foreign key: deleting a class leaves this pointing at nothing.
    class_id = Column(Integer, nullable=True)
