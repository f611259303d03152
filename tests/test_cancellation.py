from __future__ import annotations

import logging

import allure

from agent_console.cancellation import CancelToken

pytestmark = [
    allure.epic("Session Engine"),
    allure.feature("Cancellation"),
]


def test_cancel_flips_only_once() -> None:
    token = CancelToken()

    assert not token.cancelled
    assert token.cancel() is True
    assert token.cancel() is False
    assert token.cancelled
    assert token.reason == "canceled"


def test_child_is_canceled_with_parent_and_keeps_reason() -> None:
    parent = CancelToken()
    child = parent.child()
    grandchild = child.child()

    parent.cancel(reason="shutdown")

    assert child.cancelled
    assert grandchild.cancelled
    assert grandchild.reason == "shutdown"


def test_canceling_child_leaves_parent_running() -> None:
    parent = CancelToken()
    child = parent.child()

    child.cancel()

    assert not parent.cancelled


def test_callbacks_run_once_and_late_callbacks_run_immediately() -> None:
    token = CancelToken()
    calls: list[str] = []
    token.add_callback(lambda: calls.append("early"))

    token.cancel()
    token.cancel()
    token.add_callback(lambda: calls.append("late"))

    assert calls == ["early", "late"]


def test_failing_callback_does_not_stop_the_others(caplog) -> None:
    token = CancelToken()
    calls: list[str] = []

    def _boom() -> None:
        raise RuntimeError("boom")

    token.add_callback(_boom)
    token.add_callback(lambda: calls.append("ran"))

    with caplog.at_level(logging.ERROR, logger="agent_console.cancellation"):
        token.cancel()

    assert calls == ["ran"]
    assert "Cancel callback failed" in caplog.text


def test_with_timeout_cancels_with_timeout_reason() -> None:
    token = CancelToken().with_timeout(0.05)

    assert token.wait(2.0)
    assert token.reason == "timeout"


def test_release_stops_pending_timeout() -> None:
    token = CancelToken().with_timeout(0.1)

    token.release()

    assert not token.wait(0.3)


def test_deadline_is_inherited_and_only_tightened() -> None:
    assert CancelToken().remaining() is None

    outer = CancelToken().with_timeout(30)
    inner = outer.with_timeout(60)
    child = inner.child()

    assert inner.deadline == outer.deadline
    assert child.deadline == outer.deadline
    assert 0 < child.remaining() <= 30
    outer.cancel()
