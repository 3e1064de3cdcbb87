"""
Request filter context lifecycle and isolation.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from lms_backend.permissions.context import (
    FilterContextState,
    RequestFilterContext,
    current_filter,
    request_filter_scope,
)
from lms_backend.permissions.exceptions import FilterContextClosed
from lms_backend.permissions.filters import FilterType
from lms_backend.permissions.principal import AuthorizationResult, DenialReason, Principal


def principal(n):
    return Principal(user_id=f"user-{n}", roles=["INSTRUCTOR"])


class TestLifecycle:

    def test_unset_at_start(self):
        with request_filter_scope():
            assert RequestFilterContext.state() is FilterContextState.UNSET
            assert RequestFilterContext.get() is None
            assert current_filter() is FilterType.DENIED

    def test_set_and_overwrite(self):
        with request_filter_scope():
            RequestFilterContext.set(FilterType.OWN, principal(1))
            RequestFilterContext.set(FilterType.ALL, principal(2))

            entry = RequestFilterContext.get()
            assert RequestFilterContext.state() is FilterContextState.SET
            assert entry.filter_type is FilterType.ALL
            assert entry.principal.user_id == "user-2"
            assert current_filter() is FilterType.ALL

    def test_cleared_at_end(self):
        with request_filter_scope():
            RequestFilterContext.set(FilterType.OWN, principal(1))
        assert RequestFilterContext.state() is FilterContextState.CLEARED
        assert RequestFilterContext.get() is None

    def test_cleared_on_error(self):
        with pytest.raises(ValueError):
            with request_filter_scope():
                RequestFilterContext.set(FilterType.ALL, principal(1))
                raise ValueError("handler failed")
        assert RequestFilterContext.get() is None
        assert RequestFilterContext.state() is FilterContextState.CLEARED

    @pytest.mark.asyncio
    async def test_cleared_on_cancellation(self):
        started = asyncio.Event()
        observed = {}

        async def handler():
            try:
                with request_filter_scope():
                    RequestFilterContext.set(FilterType.ALL, principal(1))
                    started.set()
                    await asyncio.sleep(10)
            finally:
                observed["entry"] = RequestFilterContext.get()
                observed["state"] = RequestFilterContext.state()

        task = asyncio.create_task(handler())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert observed == {"entry": None, "state": FilterContextState.CLEARED}

    def test_no_set_after_clear(self):
        with request_filter_scope():
            RequestFilterContext.set(FilterType.OWN, principal(1))
            RequestFilterContext.clear()
            with pytest.raises(FilterContextClosed):
                RequestFilterContext.set(FilterType.ALL, principal(2))
            assert RequestFilterContext.get() is None

    def test_apply_result(self):
        with request_filter_scope():
            denied = AuthorizationResult.denied(DenialReason.NO_MATCHING_RULE, "course:READ")
            assert RequestFilterContext.apply_result(denied, principal(1)) is False
            assert RequestFilterContext.get() is None

            granted = AuthorizationResult.granted(FilterType.OWN, "course:READ")
            assert RequestFilterContext.apply_result(granted, principal(1)) is True
            assert RequestFilterContext.get().filter_type is FilterType.OWN


class TestLeakGuard:

    def test_stale_context_is_discarded(self, caplog):
        RequestFilterContext.set(FilterType.ALL, principal(1))

        with caplog.at_level(logging.WARNING, logger="lms_backend.permissions.context"):
            with request_filter_scope():
                assert RequestFilterContext.get() is None

        assert "ContextLeakGuard" in caplog.text
        assert "user-1" in caplog.text

    def test_clean_start_does_not_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="lms_backend.permissions.context"):
            with request_filter_scope():
                pass
            with request_filter_scope():
                pass
        assert "ContextLeakGuard" not in caplog.text


class TestIsolation:

    def test_sequential_requests_do_not_bleed(self):
        for n in range(20):
            with request_filter_scope():
                assert RequestFilterContext.get() is None
                RequestFilterContext.set(FilterType.OWN if n % 2 else FilterType.ALL, principal(n))
                assert RequestFilterContext.get().principal.user_id == f"user-{n}"

    @pytest.mark.asyncio
    async def test_sequential_evaluations_do_not_bleed(self, engine):
        principals = [
            Principal(user_id="u-admin", roles=["ADMIN"]),
            Principal(user_id="u-instructor", roles=["INSTRUCTOR"]),
            Principal(user_id="u-student", roles=["STUDENT"]),
        ] * 3

        for current in principals:
            with request_filter_scope():
                assert RequestFilterContext.get() is None
                result = await engine.evaluate(current, "course:READ")
                RequestFilterContext.apply_result(result, current)

                entry = RequestFilterContext.get()
                if result.allowed:
                    assert entry.principal.user_id == current.user_id
                    assert entry.filter_type is result.effective_filter
                else:
                    assert entry is None

    def test_pooled_thread_does_not_leak(self):
        seen = []

        def request(n):
            with request_filter_scope():
                seen.append(RequestFilterContext.get())
                RequestFilterContext.set(FilterType.ALL, principal(n))

        with ThreadPoolExecutor(max_workers=1) as pool:
            list(pool.map(request, range(10)))

        assert seen == [None] * 10

    def test_threads_see_only_their_own_value(self):
        barrier = threading.Barrier(4)
        results = {}

        def request(n):
            with request_filter_scope():
                RequestFilterContext.set(FilterType.OWN, principal(n))
                barrier.wait(timeout=5)
                results[n] = RequestFilterContext.get().principal.user_id

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(request, range(4)))

        assert results == {n: f"user-{n}" for n in range(4)}

    @pytest.mark.asyncio
    async def test_tasks_see_only_their_own_value(self):
        async def request(n):
            with request_filter_scope():
                RequestFilterContext.set(FilterType.OWN, principal(n))
                await asyncio.sleep(0)
                return RequestFilterContext.get().principal.user_id

        assert await asyncio.gather(*(request(n) for n in range(5))) == [f"user-{n}" for n in range(5)]
