from .base import Base, metadata
from .auth import User
from .course import Course, Enrollment, Review

__all__ = [
    'Base',
    'metadata',
    'User',
    'Course',
    'Enrollment',
    'Review',
]
