import json
from pathlib import Path

import pytest

from progress import JsonProgressSink, ProgressSaveError


@pytest.mark.asyncio
async def test_saves_are_bookmarked_per_book(tmp_path: Path) -> None:
    sink = JsonProgressSink(tmp_path / "saves" / "progress.json")
    await sink.save_progress("forest", 12)
    await sink.save_progress("castle", 3)
    await sink.save_progress("forest", 14)

    assert sink.saved_section("forest") == 14
    assert sink.saved_section("castle") == 3
    assert sink.saved_section("unknown") is None

    payload = json.loads(sink.path.read_text(encoding="utf-8"))
    assert set(payload) == {"forest", "castle"}
    assert "saved_at" in payload["forest"]
    assert not sink.tmp_path.exists()


@pytest.mark.asyncio
async def test_missing_book_id_is_rejected(tmp_path: Path) -> None:
    sink = JsonProgressSink(tmp_path / "progress.json")
    with pytest.raises(ProgressSaveError, match="missing book id"):
        await sink.save_progress("", 1)
    assert not sink.path.exists()


@pytest.mark.asyncio
async def test_unwritable_target_raises_save_error(tmp_path: Path) -> None:
    target = tmp_path / "occupied"
    target.mkdir()
    sink = JsonProgressSink(target)
    with pytest.raises(ProgressSaveError):
        await sink.save_progress("forest", 1)
    assert not sink.tmp_path.exists()


def test_corrupt_progress_file_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "progress.json"
    path.write_text("{oops", encoding="utf-8")
    sink = JsonProgressSink(path)
    assert sink.read_all() == {}
    assert sink.saved_section("forest") is None
