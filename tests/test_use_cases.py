"""
Tests for use cases — workbench wiring, menu snapshot, update.
"""

from pathlib import Path

from workbench.core.models.action import ActionStatus
from workbench.core.models.state import SequenceRun
from workbench.core.use_cases.menu import build_menu
from workbench.core.use_cases.update import run_update


class TestOpenWorkbench:
    """Tests for open_workbench()."""

    def test_wires_collaborators(self, write_action, open_wb, config):
        write_action("tools.sh")
        wb = open_wb(gpu_vendors=["amd"])

        assert wb.registry.ids() == ["tools"]
        assert wb.context.has_amd
        assert wb.store.path == config.session_file
        assert wb.run_log.log_dir == config.log_path
        assert wb.orchestrator.store is wb.store


class TestBuildMenu:
    """Tests for build_menu()."""

    def test_numbering_follows_categories(self, write_action, open_wb):
        write_action("a.sh", category="lxc")
        write_action("b.sh", category="host-setup", order="1")
        write_action("c.sh", category="lxc")
        snapshot = build_menu(open_wb())

        assert [g.name for g in snapshot.groups] == ["lxc", "host-setup"]
        assert [(e.index, e.descriptor.id) for e in snapshot.entries] == [
            (1, "a"), (2, "c"), (3, "b"),
        ]
        assert snapshot.by_index(3).descriptor.id == "b"
        assert snapshot.by_index(4) is None
        assert snapshot.setup_ids == ["b"]

    def test_statuses_are_fresh(self, write_action, open_wb, tmp_path: Path):
        flag = tmp_path / "flag"
        write_action("a.sh", detect=f'test -e "{flag}"')
        wb = open_wb()

        assert build_menu(wb).entries[0].status == ActionStatus.UNSATISFIED
        flag.touch()
        assert build_menu(wb).entries[0].status == ActionStatus.SATISFIED
        assert build_menu(wb).satisfied_count == 1

    def test_without_probe(self, write_action, open_wb):
        write_action("a.sh", detect="true")
        snapshot = build_menu(open_wb(), probe=False)
        assert snapshot.entries[0].status == ActionStatus.UNKNOWN

    def test_includes_session(self, write_action, open_wb):
        write_action("a.sh")
        wb = open_wb()
        wb.store.save(SequenceRun(action_ids=["a"], status="interrupted"))

        data = build_menu(wb).to_dict()
        assert data["session"]["status"] == "interrupted"
        assert data["categories"][0]["actions"][0]["id"] == "a"


class TestUpdate:
    """Tests for run_update()."""

    def test_success(self, config, tmp_path: Path):
        config.update_command = "touch updated"
        result = run_update(config)
        assert result.ok
        assert result.exit_status == 0
        assert (tmp_path / "updated").is_file()

    def test_failure(self, config):
        config.update_command = "exit 4"
        result = run_update(config)
        assert not result.ok
        assert result.exit_status == 4
        assert result.to_dict()["error"] == "Update command exited with code 4"

    def test_interrupted(self, config):
        config.update_command = "kill -INT $PPID; sleep 2"
        result = run_update(config)
        assert not result.ok
        assert result.error == "Update interrupted"

    def test_shell_update_rediscovers(self, write_action, open_wb, config, capsys):
        from workbench.ui.shell.session import InteractiveShell

        config.update_command = f'printf "#!/bin/bash\\nexit 0\\n" > "{config.root}/host/new.sh"'
        write_action("old.sh")
        wb = open_wb()
        answers = iter(["update", "", "q"])
        InteractiveShell(wb, input_func=lambda _: next(answers), use_readline=False).run()

        assert "new" in wb.registry
        assert "2 actions available" in capsys.readouterr().out
