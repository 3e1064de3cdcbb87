from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import relationship

from .base import Base


class Course(Base):
    __tablename__ = 'course'

    id = Column(String(36), primary_key=True)
    title = Column(String(255), nullable=False)
    instructor_id = Column(ForeignKey('user.id', ondelete='SET NULL'))
    is_published = Column(Boolean, nullable=False, server_default=text("false"))
    is_deleted = Column(Boolean, nullable=False, server_default=text("false"))

    # Relationships
    instructor = relationship('User', back_populates='courses')
    enrollments = relationship('Enrollment', back_populates='course', cascade='all, delete-orphan')
    reviews = relationship('Review', back_populates='course', cascade='all, delete-orphan')


class Enrollment(Base):
    __tablename__ = 'enrollment'
    __table_args__ = (
        UniqueConstraint('user_id', 'course_id', name='enrollment_user_course_key'),
    )

    id = Column(String(36), primary_key=True)
    user_id = Column(ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(ForeignKey('course.id', ondelete='CASCADE'), nullable=False)

    # Relationships
    user = relationship('User', back_populates='enrollments')
    course = relationship('Course', back_populates='enrollments')


class Review(Base):
    __tablename__ = 'review'

    id = Column(String(36), primary_key=True)
    user_id = Column(ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(ForeignKey('course.id', ondelete='CASCADE'), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(String(4096))

    # Relationships
    user = relationship('User', back_populates='reviews')
    course = relationship('Course', back_populates='reviews')
