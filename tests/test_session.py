import asyncio

import pytest

from game import PHASE_DEAD, PHASE_INVALID, PHASE_LOAD_FAILED, PHASE_LOADING, PHASE_PLAYING, TOAST_SAVED_TITLE
from progress import ProgressSaveError
from session import SAVE_CANCELLED_MESSAGE, TOAST_DURATION_MS, GameSession
from story import Book, BookNotFoundError

from conftest import scenario_sections


class DictSource:
    def __init__(self, books: dict[str, dict]) -> None:
        self.books = books

    def load_book(self, book_id: str) -> Book:
        if book_id not in self.books:
            raise BookNotFoundError(f"Book not found: {book_id}")
        return Book.from_dict(self.books[book_id])


class FakeSink:
    def __init__(self, fail_with: str | None = None, gate: asyncio.Event | None = None) -> None:
        self.calls: list[tuple[str, int]] = []
        self.fail_with = fail_with
        self.gate = gate

    async def save_progress(self, book_id: str, section_number: int) -> None:
        self.calls.append((book_id, section_number))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise ProgressSaveError(self.fail_with)


BOOKS = {
    "lethal": {"title": "Lethal", "sections": scenario_sections(20)},
    "named": {
        "sections": [
            {"id": "intro", "type": "BEGIN", "options": [{"gotoId": "end"}]},
            {"id": "end", "type": "END"},
        ]
    },
    "broken": {"sections": [{"id": "1", "type": "END"}]},
}


def make_session(sink: FakeSink | None = None) -> GameSession:
    return GameSession(DictSource(BOOKS), sink or FakeSink())


def test_open_phases() -> None:
    session = make_session()
    assert session.phase == PHASE_LOADING
    assert session.open("lethal") == PHASE_PLAYING
    assert session.title == "Lethal"
    assert session.reachable_count == 3
    assert session.visited_count == 1

    assert session.open("broken") == PHASE_INVALID
    assert session.validity.reason == "Book has no beginning section (BEGIN)."
    assert session.view() is None
    assert session.choose(0) == ()

    assert session.open("missing") == PHASE_LOAD_FAILED
    assert "missing" in session.load_error


def test_choose_walks_the_book() -> None:
    session = make_session()
    session.open("lethal")
    session.choose(0)
    assert session.view().section_id == "2"
    session.choose(0)
    assert session.phase == PHASE_DEAD
    assert session.choose(0) == ()
    assert session.choose(5) == ()


def test_toast_expires_after_duration() -> None:
    session = make_session()
    session.open("lethal")
    session.choose(0)
    session.advance(TOAST_DURATION_MS - 1)
    assert session.state.toast is not None
    session.advance(1)
    assert session.state.toast is None


def test_old_toast_expiry_does_not_clear_new_toast() -> None:
    session = make_session()
    session.open("lethal")
    session.choose(0)
    first = session.state.toast
    session.advance(2000)
    session.choose(0)
    second = session.state.toast
    assert second.generation > first.generation
    session.advance(500)
    assert session.state.toast == second
    session.advance(2000)
    assert session.state.toast is None


def test_restart_resets_session_state() -> None:
    session = make_session()
    session.open("lethal")
    session.choose(0)
    session.choose(0)
    session.restart()
    assert session.phase == PHASE_PLAYING
    assert session.state.health == 10
    assert session.state.visited == {"1"}


@pytest.mark.asyncio
async def test_save_progress_success() -> None:
    sink = FakeSink()
    session = make_session(sink)
    session.open("lethal")
    session.choose(0)
    await session.save_progress()
    assert sink.calls == [("lethal", 2)]
    assert session.state.toast.title == TOAST_SAVED_TITLE
    assert not session.state.save_pending


@pytest.mark.asyncio
async def test_save_progress_non_numeric_section_skips_sink() -> None:
    sink = FakeSink()
    session = make_session(sink)
    session.open("named")
    await session.save_progress()
    assert sink.calls == []
    assert "not a number" in session.state.save_error


@pytest.mark.asyncio
async def test_save_progress_failure_is_reported() -> None:
    session = make_session(FakeSink(fail_with="disk full"))
    session.open("lethal")
    await session.save_progress()
    assert session.state.save_error == "disk full"
    assert session.state.health == 10


@pytest.mark.asyncio
async def test_save_result_after_restart_is_discarded() -> None:
    gate = asyncio.Event()
    session = make_session(FakeSink(fail_with="too late", gate=gate))
    session.open("lethal")
    task = asyncio.create_task(session.save_progress())
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert session.state.save_pending

    session.restart()
    gate.set()
    await task
    assert session.state.save_error is None
    assert not session.state.save_pending


@pytest.mark.asyncio
async def test_save_result_after_reopening_is_discarded() -> None:
    gate = asyncio.Event()
    session = make_session(FakeSink(gate=gate))
    session.open("lethal")
    task = asyncio.create_task(session.save_progress())
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    session.open("lethal")
    gate.set()
    await task
    assert session.state.toast is None
    assert not session.state.save_pending


class RaisingSink:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc

    async def save_progress(self, book_id: str, section_number: int) -> None:
        raise self.exc


@pytest.mark.asyncio
async def test_unexpected_sink_error_becomes_save_error() -> None:
    session = GameSession(DictSource(BOOKS), RaisingSink(ConnectionError("network down")))
    session.open("lethal")
    events = await session.save_progress()
    assert session.state.save_error == "network down"
    assert not session.state.save_pending
    assert session.view().can_save
    assert any(getattr(e, "message", None) == "network down" for e in events)


@pytest.mark.asyncio
async def test_cancelled_save_clears_pending_flag() -> None:
    gate = asyncio.Event()
    session = make_session(FakeSink(gate=gate))
    session.open("lethal")
    task = asyncio.create_task(session.save_progress())
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert session.state.save_pending

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert not session.state.save_pending
    assert session.state.save_error == SAVE_CANCELLED_MESSAGE
