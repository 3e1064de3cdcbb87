import logging
from typing import Any
from sqlalchemy import Select, false

from lms_backend.permissions.context import RequestFilterContext
from lms_backend.permissions.filters import FilterType

logger = logging.getLogger(__name__)


class FilterScopeQueryBuilder:
    """Restricts queries to the data scope stored in the request filter context"""

    @classmethod
    def apply(cls, stmt: Select, owner_column: Any) -> Select:
        """Scope a select statement.

        Args:
            stmt: statement to restrict
            owner_column: column holding the owning user id (e.g. Course.instructor_id)

        Returns:
            The statement unchanged for ALL, filtered on owner_column for OWN
            and matching nothing for DENIED or an empty context.
        """
        entry = RequestFilterContext.get()

        if entry is None:
            logger.warning("No effective filter in context, denying access")
            return stmt.where(false())

        if entry.filter_type is FilterType.ALL:
            return stmt

        if entry.filter_type is FilterType.OWN:
            return stmt.where(owner_column == entry.principal.user_id)

        logger.debug("Access denied by effective filter")
        return stmt.where(false())

    @classmethod
    def apply_with_constraints(cls, stmt: Select, owner_column: Any, *criteria) -> Select:
        """Scope a statement and add business constraints such as is_published"""
        scoped = cls.apply(stmt, owner_column)
        return scoped.where(*criteria) if criteria else scoped
