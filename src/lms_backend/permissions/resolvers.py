"""
Ownership resolvers for the resource types of the platform.

Each resolver runs its lookup in a short lived session on the thread pool so
it does not block the event loop. A missing row means "not owner"; database
errors surface as OwnershipLookupFailed.
"""

import logging
from abc import abstractmethod
from typing import Callable, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import exists, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lms_backend.model.auth import User
from lms_backend.model.course import Course, Enrollment, Review
from lms_backend.permissions.exceptions import OwnershipLookupFailed
from lms_backend.permissions.ownership import OwnershipResolver

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class SessionOwnershipResolver(OwnershipResolver):
    """Base class for resolvers that query the database.

    Subclasses name the mapped entity and the column holding the owner's
    user id, and implement check_owner.
    """

    entity = None
    owner_attribute = "user_id"

    def __init__(self, session_factory: SessionFactory):
        if self.entity is None:
            raise TypeError(f"{type(self).__name__} does not define the entity it resolves")
        self.session_factory = session_factory

    @abstractmethod
    def check_owner(self, db: Session, principal_id: str, resource_id: str) -> bool:
        pass

    def owner_of(self, db: Session, resource_id: str) -> Optional[str]:
        owner_column = getattr(self.entity, self.owner_attribute)
        return db.scalar(select(owner_column).where(self.entity.id == resource_id))

    def exists_in(self, db: Session, resource_id: str) -> bool:
        return bool(db.scalar(select(exists().where(self.entity.id == resource_id))))

    def _lookup(self, query, *args):
        with self.session_factory() as db:
            return query(db, *args)

    async def _run(self, query, resource_id: str, *args):
        try:
            return await run_in_threadpool(self._lookup, query, *args)
        except SQLAlchemyError as e:
            logger.error(f"Ownership lookup of {self.resource_type} {resource_id} failed: {e}")
            raise OwnershipLookupFailed(f"Could not check ownership of {self.resource_type} {resource_id}") from e

    async def is_owner(self, principal_id: str, resource_id: str) -> bool:
        if not principal_id or not resource_id:
            return False
        return bool(await self._run(self.check_owner, resource_id, principal_id, resource_id))

    async def get_owner_id(self, resource_id: str) -> Optional[str]:
        if not resource_id:
            return None
        return await self._run(self.owner_of, resource_id, resource_id)

    async def resource_exists(self, resource_id: str) -> bool:
        if not resource_id:
            return False
        return await self._run(self.exists_in, resource_id, resource_id)


def is_course_instructor(db: Session, user_id: str, course_id: str) -> bool:
    return db.scalar(
        select(exists().where(Course.id == course_id, Course.instructor_id == user_id))
    )


class CourseOwnershipResolver(SessionOwnershipResolver):
    """A course is owned by its instructor"""

    resource_type = "course"
    entity = Course
    owner_attribute = "instructor_id"

    def check_owner(self, db: Session, principal_id: str, resource_id: str) -> bool:
        return is_course_instructor(db, principal_id, resource_id)


class _CourseBoundOwnershipResolver(SessionOwnershipResolver):
    """Rows that belong to a user and hang off a course.

    With include_course_instructor the instructor of that course counts as
    owner as well.
    """

    def __init__(self, session_factory: SessionFactory, include_course_instructor: bool = False):
        super().__init__(session_factory)
        self.include_course_instructor = include_course_instructor

    def check_owner(self, db: Session, principal_id: str, resource_id: str) -> bool:
        row = db.execute(
            select(self.entity.user_id, self.entity.course_id).where(self.entity.id == resource_id)
        ).first()

        if row is None:
            logger.debug(f"{self.resource_type} {resource_id} not found")
            return False

        if row.user_id == principal_id:
            return True

        if self.include_course_instructor:
            return is_course_instructor(db, principal_id, row.course_id)

        return False


class EnrollmentOwnershipResolver(_CourseBoundOwnershipResolver):
    resource_type = "enrollment"
    entity = Enrollment


class ReviewOwnershipResolver(_CourseBoundOwnershipResolver):
    resource_type = "review"
    entity = Review


class UserProfileOwnershipResolver(SessionOwnershipResolver):
    """A user profile is owned by the user itself.

    Ownership needs no lookup; only the existence check reads the user table.
    """

    resource_type = "user_profile"
    entity = User
    owner_attribute = "id"

    def check_owner(self, db: Session, principal_id: str, resource_id: str) -> bool:
        return principal_id == resource_id

    async def is_owner(self, principal_id: Optional[str], resource_id: Optional[str]) -> bool:
        return bool(principal_id) and principal_id == resource_id

    async def get_owner_id(self, resource_id: str) -> Optional[str]:
        return resource_id or None
