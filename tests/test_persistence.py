"""
Tests for persistence — session state store and run log.
"""

import json
import os
import time
from pathlib import Path

import pytest

from workbench.core.errors import SessionStateError
from workbench.core.models.action import ExecutionResult
from workbench.core.models.state import SequenceRun
from workbench.core.persistence.run_log import RunLog
from workbench.core.persistence.session_store import SessionStore, default_session_path


class TestSessionStore:
    """Tests for the atomic session record."""

    def test_save_and_load(self, tmp_path: Path):
        store = SessionStore(tmp_path / ".state" / "session.json")
        run = SequenceRun(action_ids=["a", "b", "c"], next_index=2, pending_reboot=True,
                          status="awaiting_reboot", completed=["a", "b"], boot_id="boot-1")
        store.save(run)
        assert store.exists()

        loaded = store.load()
        assert loaded is not None
        assert loaded.action_ids == ["a", "b", "c"]
        assert loaded.next_index == 2
        assert loaded.pending_reboot is True
        assert loaded.status == "awaiting_reboot"
        assert loaded.boot_id == "boot-1"

    def test_load_missing_returns_none(self, tmp_path: Path):
        assert SessionStore(tmp_path / "none.json").load() is None

    def test_load_corrupt_returns_none(self, tmp_path: Path):
        path = tmp_path / "session.json"
        path.write_text("not json at all {{{")
        assert SessionStore(path).load() is None

    def test_load_invalid_schema_returns_none(self, tmp_path: Path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"next_index": "three"}))
        assert SessionStore(path).load() is None

    def test_save_is_valid_json(self, tmp_path: Path):
        path = tmp_path / "session.json"
        SessionStore(path).save(SequenceRun(action_ids=["a"]))
        data = json.loads(path.read_text())
        assert data["schema_version"] == 1
        assert data["sequence_id"] == "setup"
        assert data["action_ids"] == ["a"]

    def test_save_atomic_no_partial(self, tmp_path: Path):
        store = SessionStore(tmp_path / "session.json")
        store.save(SequenceRun(action_ids=["a"]))
        store.save(SequenceRun(action_ids=["a", "b"]))
        assert list(tmp_path.glob(".session_*.tmp")) == []
        assert store.load().action_ids == ["a", "b"]

    def test_save_updates_timestamp(self, tmp_path: Path):
        run = SequenceRun(action_ids=["a"])
        old_ts = run.updated_at
        time.sleep(0.01)
        SessionStore(tmp_path / "session.json").save(run)
        assert run.updated_at != old_ts

    def test_save_failure_raises(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file where a directory should be")
        store = SessionStore(blocker / "session.json")
        with pytest.raises(SessionStateError):
            store.save(SequenceRun(action_ids=["a"]))

    def test_clear(self, tmp_path: Path):
        store = SessionStore(tmp_path / "session.json")
        store.save(SequenceRun(action_ids=["a"]))
        assert store.clear() is True
        assert not store.exists()
        assert store.clear() is False

    def test_default_path(self, tmp_path: Path):
        assert default_session_path(tmp_path) == tmp_path / ".state" / "session.json"


class TestRunLog:
    """Tests for per-run log files and the ledger."""

    def _log(self, tmp_path: Path, retention: int = 50) -> RunLog:
        return RunLog(tmp_path / "logs", tmp_path / "runs.ndjson", retention=retention)

    def test_open_log_writes_header(self, tmp_path: Path):
        path = self._log(tmp_path).open_log("tools", "Install tools")
        assert path.parent == tmp_path / "logs"
        assert path.name.startswith("tools-")
        assert path.suffix == ".log"
        text = path.read_text()
        assert "Action:  tools" in text
        assert "About:   Install tools" in text
        assert "Started:" in text

    def test_open_log_unique_names(self, tmp_path: Path):
        log = self._log(tmp_path)
        first = log.open_log("tools")
        second = log.open_log("tools")
        assert first != second
        assert first.is_file() and second.is_file()

    def test_close_log_writes_footer(self, tmp_path: Path):
        log = self._log(tmp_path)
        path = log.open_log("tools")
        log.close_log(ExecutionResult.failure("tools", "Exited with code 2",
                                              exit_status=2, log_path=path))
        text = path.read_text()
        assert "Outcome:  failure" in text
        assert "Exit:     2" in text
        assert "Detail:   Exited with code 2" in text

    def test_close_log_without_path_is_noop(self, tmp_path: Path):
        self._log(tmp_path).close_log(ExecutionResult.failure("x", "no log"))

    def test_prune_keeps_newest(self, tmp_path: Path):
        log = self._log(tmp_path, retention=3)
        paths = []
        for i in range(5):
            p = log.open_log(f"a{i}")
            os.utime(p, (1_000_000 + i, 1_000_000 + i))
            paths.append(p)

        removed = log.prune()
        assert removed == paths[:2]
        assert log.log_files() == paths[2:]

    def test_prune_under_cap(self, tmp_path: Path):
        log = self._log(tmp_path, retention=3)
        log.open_log("a")
        assert log.prune() == []
        assert len(log.log_files()) == 1

    def test_log_files_without_dir(self, tmp_path: Path):
        assert self._log(tmp_path).log_files() == []

    def test_record_and_read(self, tmp_path: Path):
        log = self._log(tmp_path)
        log.record(ExecutionResult.success("a", exit_status=0), sequence_id="setup")
        log.record(ExecutionResult.reboot("b", exit_status=3))

        entries = log.read_all()
        assert [(e.action_id, e.outcome, e.exit_status) for e in entries] == [
            ("a", "success", 0),
            ("b", "reboot_required", 3),
        ]
        assert entries[0].sequence_id == "setup"
        assert entries[1].sequence_id is None

    def test_read_recent(self, tmp_path: Path):
        log = self._log(tmp_path)
        for i in range(5):
            log.record(ExecutionResult.success(f"a{i}"))
        assert [e.action_id for e in log.read_recent(2)] == ["a3", "a4"]

    def test_corrupt_ledger_line_skipped(self, tmp_path: Path):
        log = self._log(tmp_path)
        log.record(ExecutionResult.success("a"))
        with log.ledger_path.open("a") as f:
            f.write("garbage\n")
        log.record(ExecutionResult.success("b"))
        assert [e.action_id for e in log.read_all()] == ["a", "b"]

    def test_read_missing_ledger(self, tmp_path: Path):
        assert self._log(tmp_path).read_all() == []
