from sqlalchemy import Boolean, Column, String, text
from sqlalchemy.orm import relationship

from .base import Base


class User(Base):
    __tablename__ = 'user'

    id = Column(String(36), primary_key=True)
    email = Column(String(320), unique=True)
    name = Column(String(255))
    archived = Column(Boolean, nullable=False, server_default=text("false"))

    # Relationships
    courses = relationship('Course', back_populates='instructor')
    enrollments = relationship('Enrollment', back_populates='user')
    reviews = relationship('Review', back_populates='user')
