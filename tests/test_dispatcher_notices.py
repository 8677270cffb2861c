"""Tests for services/dispatcher and utils/notices."""

from __future__ import annotations

import pytest

from services.dispatcher import Dispatcher, Intent, UnknownIntentError
from utils.notices import NoticeBoard


class TestDispatcher:
    def test_dispatch_calls_handler_with_payload(self):
        d = Dispatcher()
        d.register("open_project", lambda payload: payload["project_id"])
        assert d.handles("open_project")
        assert d.dispatch(Intent("open_project", {"project_id": "p1"})) == "p1"

    def test_unknown_intent(self):
        with pytest.raises(UnknownIntentError):
            Dispatcher().dispatch(Intent("nope"))

    def test_duplicate_registration(self):
        d = Dispatcher()
        d.register("x", lambda payload: None)
        with pytest.raises(ValueError):
            d.register("x", lambda payload: None)


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestNoticeBoard:
    def test_new_notice_replaces_previous(self):
        board = NoticeBoard(ttl_s=5, clock=_Clock())
        board.success("saved")
        board.error("failed")
        notice = board.active()
        assert notice.kind == "error"
        assert notice.message == "failed"

    def test_notice_expires(self):
        clock = _Clock()
        board = NoticeBoard(ttl_s=5, clock=clock)
        board.warning("careful")
        clock.now = 4.9
        assert board.active() is not None
        clock.now = 5.0
        assert board.active() is None

    def test_dismiss(self):
        board = NoticeBoard(clock=_Clock())
        board.success("x")
        board.dismiss()
        assert board.active() is None
