from datetime import datetime
from pathlib import Path

import pytest

from incbackup.errors import BackupLockedError, SourceLayoutError
from incbackup.generations import (
    IN_PROGRESS_SUFFIX,
    LOCK_FILENAME,
    backup_lock,
    check_source_layout,
    create_working_directory,
    finalize_generation,
    generation_name,
    latest_generation,
    list_generations,
    list_unfinished,
    parse_generation_name,
    source_subdirectory,
)
from incbackup.models import CopyStats
from incbackup.stats_log import append_stats


def test_generation_name_round_trip():
    started = datetime(2023, 7, 4, 9, 5, 1)
    assert generation_name(started) == "2023-07-04 09-05-01"
    assert parse_generation_name("2023-07-04 09-05-01") == started
    assert parse_generation_name("2023-07-04 09-05-01-inprogress") is None
    assert parse_generation_name("notes") is None


def test_latest_generation_ignores_unrelated_entries(tmp_path):
    for name in ("2023-01-01 00-00-00", "2024-05-01 12-00-00", "2023-12-31 23-59-59"):
        (tmp_path / name).mkdir()
    (tmp_path / "2025-01-01 00-00-00-inprogress").mkdir()
    (tmp_path / "misc").mkdir()
    (tmp_path / "2026-01-01 00-00-00").write_text("a file, not a generation")

    names = [g.name for g in list_generations(tmp_path)]
    assert names == ["2023-01-01 00-00-00", "2023-12-31 23-59-59", "2024-05-01 12-00-00"]
    assert latest_generation(tmp_path).name == "2024-05-01 12-00-00"
    assert [p.name for p in list_unfinished(tmp_path)] == ["2025-01-01 00-00-00-inprogress"]


def test_latest_generation_of_empty_root_is_none(tmp_path):
    assert latest_generation(tmp_path) is None


def test_working_directory_is_finalized_by_rename(tmp_path):
    working, final = create_working_directory(tmp_path, datetime(2024, 2, 3, 4, 5, 6))
    assert working.name == "2024-02-03 04-05-06" + IN_PROGRESS_SUFFIX
    assert working.is_dir() and not final.exists()

    (working / "marker").write_text("x")
    finalize_generation(working, final)
    assert (final / "marker").read_text() == "x"
    assert not working.exists()


def test_working_directory_refuses_existing_generation(tmp_path):
    started = datetime(2024, 2, 3, 4, 5, 6)
    (tmp_path / generation_name(started)).mkdir()
    with pytest.raises(FileExistsError):
        create_working_directory(tmp_path, started)


def test_source_subdirectory_uses_leaf_name(tmp_path):
    base = tmp_path / "gen"
    assert source_subdirectory(Path("/a/b/c"), base) == base / "c"
    assert source_subdirectory(Path("/a/b/c/"), base) == base / "c"
    assert source_subdirectory(Path("/"), base) == base


def test_duplicate_leaf_names_are_rejected():
    with pytest.raises(SourceLayoutError):
        check_source_layout([Path("/a/b/c"), Path("/x/y/c")])
    check_source_layout([Path("/a/b/c"), Path("/x/y/d")])


def test_source_without_final_name_must_stand_alone():
    with pytest.raises(SourceLayoutError):
        check_source_layout([Path("/"), Path("/home")])
    with pytest.raises(SourceLayoutError):
        check_source_layout([Path("/home"), Path("/")])
    check_source_layout([Path("/")])


def test_lock_is_exclusive_and_released(tmp_path):
    with backup_lock(tmp_path) as lock_path:
        assert lock_path == tmp_path / LOCK_FILENAME
        with pytest.raises(BackupLockedError):
            with backup_lock(tmp_path):
                pass
    assert not (tmp_path / LOCK_FILENAME).exists()


def test_lock_released_on_error(tmp_path):
    with pytest.raises(RuntimeError):
        with backup_lock(tmp_path):
            raise RuntimeError("boom")
    assert not (tmp_path / LOCK_FILENAME).exists()


def test_append_stats_creates_parents_and_appends(tmp_path):
    path = tmp_path / "logs" / "stats.csv"
    append_stats(path, "2024-01-01 10-00-00", CopyStats(bytes_copied=100, files_copied=1))
    append_stats(path, "2024-01-02 10-00-00", CopyStats())
    assert path.read_text().splitlines() == [
        "2024-01-01 10-00-00,100,1",
        "2024-01-02 10-00-00,0,0",
    ]
