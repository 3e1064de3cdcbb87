"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure lms_backend is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from lms_backend.model import Base, User, Course, Enrollment, Review
from lms_backend.permissions.context import RequestFilterContext
from lms_backend.permissions.engine import AuthorizationEngine
from lms_backend.permissions.filters import FilterType
from lms_backend.permissions.ownership import OwnershipRegistry
from lms_backend.permissions.principal import Principal, RolePermissionRule
from lms_backend.permissions.rules import InMemoryRuleStore
from lms_backend.tests.fixtures import RecordingRuleStore


# ============================================================================
# Rules and principals
# ============================================================================

@pytest.fixture
def course_rules():
    """INSTRUCTOR reads own courses, ADMIN reads all, STUDENT has no rule"""
    return [
        RolePermissionRule(role_id="INSTRUCTOR", permission_key="course:READ", filter_type=FilterType.OWN),
        RolePermissionRule(role_id="ADMIN", permission_key="course:READ", filter_type=FilterType.ALL),
        RolePermissionRule(role_id="ADMIN", permission_key="course:DELETE", filter_type=FilterType.ALL),
        RolePermissionRule(role_id="STUDENT", permission_key="enrollment:READ", filter_type=FilterType.OWN),
        RolePermissionRule(role_id="STUDENT", permission_key="course:UPDATE", filter_type=FilterType.ALL,
                           is_active=False),
    ]


@pytest.fixture
def rule_store(course_rules):
    return RecordingRuleStore(InMemoryRuleStore(course_rules))


@pytest.fixture
def registry():
    return OwnershipRegistry()


@pytest.fixture
def engine(rule_store, registry):
    return AuthorizationEngine(rule_store=rule_store, ownership=registry)


@pytest.fixture
def instructor():
    return Principal(user_id="instructor-1", roles=["INSTRUCTOR"])


@pytest.fixture
def admin():
    return Principal(user_id="admin-1", roles=["ADMIN"])


@pytest.fixture
def student():
    return Principal(user_id="student-1", roles=["STUDENT"])


@pytest.fixture(autouse=True)
def reset_filter_context():
    """Every test starts and ends with an unset filter context"""
    RequestFilterContext.begin()
    yield
    RequestFilterContext.begin()


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def session_factory():
    """In-memory SQLite database shared by all sessions of one test"""
    db_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(db_engine)
    factory = sessionmaker(bind=db_engine, autocommit=False, autoflush=False)
    try:
        yield factory
    finally:
        db_engine.dispose()


@pytest.fixture
def seeded_session_factory(session_factory):
    """instructor-1 teaches c1, instructor-2 teaches c2, student-1 is enrolled in c1 and reviewed it"""
    with session_factory() as db:
        db.add_all([
            User(id="instructor-1", email="i1@example.org", name="Instructor One"),
            User(id="instructor-2", email="i2@example.org", name="Instructor Two"),
            User(id="student-1", email="s1@example.org", name="Student One"),
        ])
        db.flush()
        db.add_all([
            Course(id="c1", title="Databases", instructor_id="instructor-1", is_published=True),
            Course(id="c2", title="Compilers", instructor_id="instructor-2", is_published=False),
        ])
        db.flush()
        db.add_all([
            Enrollment(id="e1", user_id="student-1", course_id="c1"),
            Review(id="r1", user_id="student-1", course_id="c1", rating=5, comment="Great"),
        ])
        db.commit()
    return session_factory
