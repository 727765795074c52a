import logging

from config import PROGRESS_FILE
from services.progress_service import ProgressTracker


def _state(index: int = 49) -> dict:
    return {
        "lastProcessedIndex": index,
        "lastProcessedObject": f"Object{index}",
        "totalObjects": 100,
        "startedAt": "2024-01-01T00:00:00+00:00",
        "lastUpdatedAt": "2024-01-01T00:10:00+00:00",
        "processedCount": index + 1,
    }


def test_save_then_load(tmp_path) -> None:
    tracker = ProgressTracker(str(tmp_path))
    tracker.save(_state())

    assert (tmp_path / PROGRESS_FILE).exists()
    assert tracker.load() == _state()
    assert tracker.should_resume() is True


def test_save_overwrites_previous_checkpoint(tmp_path) -> None:
    tracker = ProgressTracker(str(tmp_path))
    tracker.save(_state(9))
    tracker.save(_state(19))

    assert tracker.load()["lastProcessedIndex"] == 19
    assert not (tmp_path / f"{PROGRESS_FILE}.tmp").exists()


def test_save_creates_output_dir(tmp_path) -> None:
    tracker = ProgressTracker(str(tmp_path / "new" / "dir"))
    tracker.save(_state())
    assert tracker.load() is not None


def test_load_without_checkpoint(tmp_path) -> None:
    tracker = ProgressTracker(str(tmp_path))
    assert tracker.load() is None
    assert tracker.should_resume() is False


def test_corrupt_checkpoint_is_treated_as_absent(tmp_path, caplog) -> None:
    (tmp_path / PROGRESS_FILE).write_text("{not json", encoding="utf-8")
    tracker = ProgressTracker(str(tmp_path))

    with caplog.at_level(logging.ERROR):
        assert tracker.load() is None
    assert "Failed to load progress" in caplog.text


def test_checkpoint_without_index_is_treated_as_absent(tmp_path) -> None:
    (tmp_path / PROGRESS_FILE).write_text('{"lastProcessedObject": "Account"}', encoding="utf-8")
    assert ProgressTracker(str(tmp_path)).load() is None


def test_clear(tmp_path) -> None:
    tracker = ProgressTracker(str(tmp_path))
    tracker.clear()

    tracker.save(_state())
    tracker.clear()
    assert tracker.load() is None
    assert not (tmp_path / PROGRESS_FILE).exists()
