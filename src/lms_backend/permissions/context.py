"""
Request scoped filter context.

After a successful authorization the caller stores the effective filter and
the principal here, and query code further down the same request reads it to
scope its data access. The slot lives in a ContextVar, so every thread and
every asyncio task sees only its own value.

Lifecycle of one request::

    UNSET -> SET [-> SET ...] -> CLEARED

Use request_filter_scope() (or FilterContextMiddleware) to guarantee the
clear at the end of the request; pooled worker threads would otherwise carry
one user's data scope into the next request.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from typing import Iterator, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict

from lms_backend.permissions.exceptions import ContextLeakGuard, FilterContextClosed
from lms_backend.permissions.filters import FilterType
from lms_backend.permissions.principal import AuthorizationResult, Principal

logger = logging.getLogger(__name__)


class FilterContextState(str, Enum):
    UNSET = "unset"
    SET = "set"
    CLEARED = "cleared"


class FilterContextEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    filter_type: FilterType
    principal: Principal


class _Slot(NamedTuple):
    state: FilterContextState
    entry: Optional[FilterContextEntry] = None


_UNSET = _Slot(FilterContextState.UNSET)
_CLEARED = _Slot(FilterContextState.CLEARED)

_current: ContextVar[_Slot] = ContextVar("lms_request_filter_context", default=_UNSET)


class RequestFilterContext:

    @staticmethod
    def state() -> FilterContextState:
        return _current.get().state

    @staticmethod
    def get() -> Optional[FilterContextEntry]:
        """Current (filter, principal) pair or None when nothing was set"""
        return _current.get().entry

    @staticmethod
    def set(filter_type: FilterType, principal: Principal) -> FilterContextEntry:
        """Store the pair, replacing any earlier value of this request"""
        if _current.get().state is FilterContextState.CLEARED:
            raise FilterContextClosed("Filter context was already cleared for this request")

        entry = FilterContextEntry(filter_type=filter_type, principal=principal)
        _current.set(_Slot(FilterContextState.SET, entry))
        logger.debug(f"Filter context set to {filter_type.name} for user {principal.user_id}")
        return entry

    @staticmethod
    def clear() -> None:
        _current.set(_CLEARED)

    @staticmethod
    def begin() -> None:
        """Start a new lifecycle, discarding anything left over"""
        slot = _current.get()
        if slot.state is FilterContextState.SET:
            user_id = slot.entry.principal.user_id if slot.entry else None
            logger.warning(f"{ContextLeakGuard.__name__}: discarding stale filter context of user {user_id}")
        _current.set(_UNSET)

    @classmethod
    def apply_result(cls, result: AuthorizationResult, principal: Principal) -> bool:
        """Write a granted result into the context; denials leave it untouched"""
        if not result.allowed:
            return False
        cls.set(result.effective_filter, principal)
        return True


@contextmanager
def request_filter_scope() -> Iterator[type[RequestFilterContext]]:
    RequestFilterContext.begin()
    try:
        yield RequestFilterContext
    finally:
        RequestFilterContext.clear()


def current_filter() -> FilterType:
    """Effective filter of the current request, DENIED when none was set"""
    entry = RequestFilterContext.get()
    return entry.filter_type if entry is not None else FilterType.DENIED
