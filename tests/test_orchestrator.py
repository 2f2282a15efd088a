"""
Tests for the execution orchestrator — single runs, sequences, reboot resume.
"""

from pathlib import Path

import pytest

from workbench.core.models.state import SequenceRun


def _ran(tmp_path: Path) -> list[str]:
    path = tmp_path / "ran.txt"
    return path.read_text().split() if path.is_file() else []


def _step(name: str, extra: str = "exit 0") -> str:
    return f'echo {name} >> "$WORKBENCH_ROOT/ran.txt"\n{extra}'


@pytest.fixture
def messages() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def notify(messages):
    def _notify(level: str, message: str) -> None:
        messages.append((level, message))
    return _notify


class TestRun:
    """Tests for Orchestrator.run (single action)."""

    def test_success(self, write_action, open_wb, tmp_path: Path):
        write_action("tools.sh", 'echo "hello from tools"')
        wb = open_wb()
        result = wb.orchestrator.run("tools")

        assert result.outcome == "success"
        assert result.exit_status == 0
        assert result.log_path is not None
        text = result.log_path.read_text()
        assert "hello from tools" in text
        assert "Outcome:  success" in text

    def test_failure(self, write_action, open_wb):
        write_action("broken.sh", 'echo "about to fail" >&2\nexit 2')
        wb = open_wb()
        result = wb.orchestrator.run("broken")

        assert result.failed
        assert result.exit_status == 2
        assert "about to fail" in result.log_path.read_text()

    def test_reboot_exit_code(self, write_action, open_wb):
        write_action("kernel.sh", "exit 3")
        result = open_wb().orchestrator.run("kernel")
        assert result.reboot_required
        assert result.ok

    def test_reboot_marker(self, write_action, open_wb, config):
        write_action("kernel.sh", 'touch "$WORKBENCH_REBOOT_MARKER"\nexit 0')
        result = open_wb().orchestrator.run("kernel")
        assert result.reboot_required
        assert result.metadata["marker"] is True
        assert not config.reboot_marker_path.exists()

    def test_stale_marker_cleared_before_run(self, write_action, open_wb, config):
        config.reboot_marker_path.parent.mkdir(parents=True, exist_ok=True)
        config.reboot_marker_path.touch()
        write_action("plain.sh", "exit 0")
        assert open_wb().orchestrator.run("plain").outcome == "success"

    def test_custom_reboot_exit_code(self, write_action, open_wb, config):
        config.reboot_exit_code = 42
        write_action("a.sh", "exit 3")
        write_action("b.sh", "exit 42")
        wb = open_wb()
        assert wb.orchestrator.run("a").failed
        assert wb.orchestrator.run("b").reboot_required

    def test_unknown_action(self, open_wb):
        result = open_wb().orchestrator.run("nope")
        assert result.failed
        assert "Unknown action" in result.detail

    def test_context_environment(self, write_action, open_wb, tmp_path: Path):
        write_action("env.sh", '[ "$WORKBENCH_HAS_NVIDIA" = 1 ] && [ -f "$WORKBENCH_RUN_LOG" ]')
        assert open_wb(gpu_vendors=["nvidia"]).orchestrator.run("env").outcome == "success"
        assert open_wb(gpu_vendors=["amd"]).orchestrator.run("env").failed

    def test_ledger_entry_per_run(self, write_action, open_wb):
        write_action("tools.sh")
        wb = open_wb()
        wb.orchestrator.run("tools")
        wb.orchestrator.run("tools")
        records = wb.run_log.read_all()
        assert [r.action_id for r in records] == ["tools", "tools"]
        assert all(r.outcome == "success" for r in records)

    def test_logs_bounded(self, write_action, open_wb, config):
        config.log_retention = 2
        write_action("tools.sh")
        wb = open_wb()
        for _ in range(4):
            wb.orchestrator.run("tools")
        assert len(wb.run_log.log_files()) == 2


class TestSequence:
    """Tests for run_sequence / resume."""

    def test_all_steps_succeed(self, write_action, open_wb, tmp_path: Path, notify):
        write_action("a.sh", _step("a"))
        write_action("b.sh", _step("b"))
        wb = open_wb(notify=notify)

        run = wb.orchestrator.run_sequence(["a", "b"])
        assert run.status == "completed"
        assert run.completed == ["a", "b"]
        assert _ran(tmp_path) == ["a", "b"]
        assert not wb.store.exists()

    def test_reboot_then_resume(self, write_action, open_wb, tmp_path: Path, notify, messages):
        write_action("one.sh", _step("one"))
        write_action("two.sh", _step("two", "exit 3"))
        write_action("three.sh", _step("three"))
        wb = open_wb(notify=notify)

        run = wb.orchestrator.run_sequence(["one", "two", "three"])
        assert run.status == "awaiting_reboot"
        assert _ran(tmp_path) == ["one", "two"]

        saved = wb.store.load()
        assert saved.pending_reboot is True
        assert saved.next_index == 2
        assert saved.completed == ["one", "two"]
        assert any("requires a host reboot" in m for _, m in messages)

        # process restarts after the reboot
        wb2 = open_wb(boot_id="boot-2", notify=notify)
        resumed = wb2.orchestrator.resume(wb2.store.load())
        assert resumed.status == "completed"
        assert _ran(tmp_path) == ["one", "two", "three"]
        assert not wb2.store.exists()

    def test_reboot_on_last_step_keeps_record(self, write_action, open_wb):
        write_action("a.sh", "exit 0")
        write_action("b.sh", "exit 3")
        wb = open_wb()
        run = wb.orchestrator.run_sequence(["a", "b"])
        assert run.status == "awaiting_reboot"
        assert run.finished

        resumed = wb.orchestrator.resume(wb.store.load())
        assert resumed.status == "completed"
        assert not wb.store.exists()

    def test_failure_halts(self, write_action, open_wb, tmp_path: Path, notify, messages):
        write_action("a.sh", _step("a"))
        write_action("b.sh", _step("b", 'echo "disk full" >&2\nexit 1'))
        write_action("c.sh", _step("c"))
        wb = open_wb(notify=notify)

        run = wb.orchestrator.run_sequence(["a", "b", "c"])
        assert run.status == "failed"
        assert _ran(tmp_path) == ["a", "b"]

        saved = wb.store.load()
        assert saved.pending_reboot is False
        assert saved.next_index == 1
        assert saved.status == "failed"
        assert saved.last_log is not None
        assert "disk full" in Path(saved.last_log).read_text()

        level, message = messages[-1]
        assert level == "error"
        assert "b failed" in message
        assert saved.last_log in message

    def test_ctrl_c_during_step_keeps_position(self, write_action, open_wb, tmp_path: Path):
        write_action("a.sh", _step("a"))
        write_action("b.sh", _step("b", "kill -INT $PPID\nsleep 2"))
        write_action("c.sh", _step("c"))
        wb = open_wb()

        run = wb.orchestrator.run_sequence(["a", "b", "c"])
        assert run.status == "interrupted"
        assert run.next_index == 1
        assert run.completed == ["a"]
        assert _ran(tmp_path) == ["a", "b"]

        saved = wb.store.load()
        assert saved.status == "interrupted"
        assert saved.next_index == 1
        assert not saved.pending_reboot

    def test_retry_after_failure(self, write_action, open_wb, tmp_path: Path):
        write_action("a.sh", _step("a"))
        flaky = write_action("b.sh", _step("b", "exit 1"))
        wb = open_wb()
        wb.orchestrator.run_sequence(["a", "b"])

        flaky.write_text("#!/usr/bin/env bash\n" + _step("b") + "\n")
        resumed = wb.orchestrator.resume(wb.store.load())
        assert resumed.status == "completed"
        assert _ran(tmp_path) == ["a", "b", "b"]

    def test_steps_before_index_never_rerun(self, write_action, open_wb, tmp_path: Path):
        for name in ("a", "b", "c"):
            write_action(f"{name}.sh", _step(name))
        wb = open_wb()
        wb.store.save(SequenceRun(action_ids=["a", "b", "c"], next_index=2,
                                  pending_reboot=True, status="awaiting_reboot"))

        wb.orchestrator.resume(wb.store.load())
        assert _ran(tmp_path) == ["c"]

    def test_gpu_specific_step_skipped(self, write_action, open_wb, tmp_path: Path):
        write_action("tools.sh", _step("tools"))
        write_action("nvidia.sh", _step("nvidia"), requires_gpu="nvidia")
        write_action("amd.sh", _step("amd"), requires_gpu="amd")
        wb = open_wb(gpu_vendors=["amd"])

        run = wb.orchestrator.run_sequence(["tools", "nvidia", "amd"])
        assert run.status == "completed"
        assert run.skipped == ["nvidia"]
        assert _ran(tmp_path) == ["tools", "amd"]

    def test_unknown_step_halts(self, write_action, open_wb):
        write_action("a.sh")
        wb = open_wb()
        run = wb.orchestrator.run_sequence(["a", "ghost"])
        assert run.status == "failed"
        assert run.next_index == 1
        assert "ghost" in run.last_error

    def test_empty_sequence_completes(self, open_wb):
        wb = open_wb()
        run = wb.orchestrator.run_sequence([])
        assert run.status == "completed"
        assert not wb.store.exists()

    def test_cancel(self, write_action, open_wb):
        write_action("a.sh", "exit 3")
        write_action("b.sh")
        wb = open_wb()
        wb.orchestrator.run_sequence(["a", "b"])
        assert wb.orchestrator.cancel() is True
        assert wb.store.load() is None
        assert wb.orchestrator.cancel() is False


class TestConfirm:
    """Tests for the per-step confirmation callback."""

    def test_skip(self, write_action, open_wb, tmp_path: Path):
        write_action("a.sh", _step("a"))
        write_action("b.sh", _step("b"))

        def confirm(descriptor, run):
            return "skip" if descriptor.id == "a" else "run"

        run = open_wb().orchestrator.run_sequence(["a", "b"], confirm=confirm)
        assert run.skipped == ["a"]
        assert _ran(tmp_path) == ["b"]

    def test_quit_keeps_position(self, write_action, open_wb, tmp_path: Path):
        write_action("a.sh", _step("a"))
        write_action("b.sh", _step("b"))

        def confirm(descriptor, run):
            return "quit" if descriptor.id == "b" else "run"

        wb = open_wb()
        run = wb.orchestrator.run_sequence(["a", "b"], confirm=confirm)
        assert run.status == "interrupted"
        saved = wb.store.load()
        assert saved.next_index == 1
        assert saved.pending_reboot is False
        assert _ran(tmp_path) == ["a"]

    def test_eof_in_confirm_is_quit(self, write_action, open_wb):
        write_action("a.sh")

        def confirm(descriptor, run):
            raise EOFError

        wb = open_wb()
        run = wb.orchestrator.run_sequence(["a"], confirm=confirm)
        assert run.status == "interrupted"
        assert wb.store.load().next_index == 0

    def test_confirm_sees_progress(self, write_action, open_wb):
        write_action("a.sh")
        write_action("b.sh")
        seen = []

        def confirm(descriptor, run):
            seen.append((descriptor.id, run.next_index, run.total))
            return "run"

        open_wb().orchestrator.run_sequence(["a", "b"], confirm=confirm)
        assert seen == [("a", 0, 2), ("b", 1, 2)]
