"""Integration tests for the SpecPoller control loop."""

import json
import sqlite3
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from opswatch.config import WatcherConfig
from opswatch.controller.approval import APPROVAL_NOTE
from opswatch.controller.poller import INVALID_SPEC_NOTE, SpecPoller
from opswatch.registry.database import RegistryDatabase
from opswatch.registry.models import AgentDefinition
from opswatch.specs.models import SpecFileState


@pytest.fixture
def poller(config: WatcherConfig, registry: RegistryDatabase, now: datetime) -> SpecPoller:
    return SpecPoller(config, registry, clock=lambda: now)


@pytest.fixture
def controller(registry: RegistryDatabase) -> str:
    """Register the controller's own group under the ``main`` folder."""
    jid = "whatsapp:120363@g.us"
    registry.set_agent(jid, AgentDefinition(name="Andy", folder="main", trigger="@andy"))
    return jid


def _names(directory: Path) -> list[str]:
    return sorted(p.name for p in directory.iterdir())


@pytest.mark.integration
class TestCreateFlow:
    def test_create_applied(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        registry: RegistryDatabase,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
        instructions_section: Callable[..., str],
    ):
        write_spec("create-billing.md", make_spec("create", "billing", instructions_section(10)))

        outcomes = poller.tick()

        assert [o.state for o in outcomes] == [SpecFileState.APPLIED]
        assert _names(config.ops_dir) == ["create-billing.APPLIED.md"]
        assert registry.get_agent("agent:billing-specialist") is not None
        history = registry.list_transitions()
        assert history[0].spec_name == "create-billing"
        assert history[0].from_state == "NEW"
        assert history[0].to_state == "APPLIED"
        assert history[0].agent == "billing"

    def test_second_tick_is_noop(
        self,
        poller: SpecPoller,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
        instructions_section: Callable[..., str],
    ):
        write_spec("create-billing.md", make_spec("create", "billing", instructions_section(10)))
        poller.tick()
        assert poller.tick() == []

    def test_duplicate_create_fails_second(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
        instructions_section: Callable[..., str],
    ):
        text = make_spec("create", "billing", instructions_section(10))
        write_spec("create-billing.md", text)
        poller.tick()
        write_spec("create-billing-again.md", text)

        outcomes = poller.tick()

        assert outcomes[0].state == SpecFileState.FAILED
        failed = (config.ops_dir / "create-billing-again.FAILED.md").read_text()
        assert '**Error:** Agent "billing" already exists (JID: agent:billing-specialist)' in failed

    def test_isolation_scenario(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        registry: RegistryDatabase,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
        instructions_section: Callable[..., str],
    ):
        body = instructions_section(10) + "\n## Mounts\n- host: tasks/other-agent\n  container: tasks\n"
        write_spec("create-billing.md", make_spec("create", "billing", body))

        poller.tick()

        failed = (config.ops_dir / "create-billing.FAILED.md").read_text()
        assert "other-agent" in failed
        assert "Changes applied before the failure" not in failed
        assert registry.list_agents() == {}
        assert not (config.shared_dir / "tasks" / "billing").exists()

    def test_partial_failure_lists_effects(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
        instructions_section: Callable[..., str],
    ):
        write_spec("create-billing.md", make_spec("create", "billing", instructions_section(10)))

        with patch(
            "opswatch.reconcile.create.write_settings", side_effect=OSError("disk full")
        ):
            outcomes = poller.tick()

        assert outcomes[0].state == SpecFileState.FAILED
        failed = (config.ops_dir / "create-billing.FAILED.md").read_text()
        assert "**Error:** disk full" in failed
        assert "**Changes applied before the failure:**" in failed
        assert "- Registered agent:billing-specialist" in failed

    def test_create_then_delete_in_one_tick(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        registry: RegistryDatabase,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
        instructions_section: Callable[..., str],
    ):
        write_spec("create-billing.md", make_spec("create", "billing", instructions_section(10)))
        write_spec("delete-billing.md", make_spec("delete", "billing"))

        outcomes = poller.tick()

        assert [o.state for o in outcomes] == [SpecFileState.APPLIED, SpecFileState.APPLIED]
        assert registry.list_agents() == {}
        assert (config.shared_dir / "tasks" / "billing" / "archive").is_dir()


@pytest.mark.integration
class TestMalformed:
    def test_missing_header(
        self, poller: SpecPoller, config: WatcherConfig, write_spec: Callable[[str, str], Path]
    ):
        write_spec("create-billing.md", "## CLAUDE.md\nno header\n")

        outcomes = poller.tick()

        assert outcomes[0].state == SpecFileState.FAILED
        failed = (config.ops_dir / "create-billing.FAILED.md").read_text()
        assert failed.endswith(INVALID_SPEC_NOTE)

    def test_unknown_operation(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
    ):
        write_spec("modify-billing.md", make_spec("rename", "billing"))
        poller.tick()
        assert (config.ops_dir / "modify-billing.FAILED.md").exists()

    def test_undecodable_bytes(self, poller: SpecPoller, config: WatcherConfig):
        config.ops_dir.mkdir(parents=True)
        (config.ops_dir / "create-bad.md").write_bytes(b"---\n\xff\xfe\n---\n")

        outcomes = poller.tick()

        assert outcomes[0].state == SpecFileState.FAILED
        assert (config.ops_dir / "create-bad.FAILED.md").exists()

    def test_unreadable_files_fail_and_loop_continues(
        self, poller: SpecPoller, config: WatcherConfig, write_spec: Callable[[str, str], Path]
    ):
        write_spec("create-a.md", "---\noperation: create\nagent: a\n---\n")
        write_spec("create-b.md", "---\noperation: create\nagent: b\n---\n")

        with patch.object(
            Path, "read_text", autospec=True, side_effect=PermissionError(13, "Permission denied")
        ):
            outcomes = poller.tick()

        assert [o.state for o in outcomes] == [SpecFileState.FAILED, SpecFileState.FAILED]
        assert _names(config.ops_dir) == ["create-a.FAILED.md", "create-b.FAILED.md"]

    def test_vanished_file_skipped(
        self, poller: SpecPoller, config: WatcherConfig, write_spec: Callable[[str, str], Path]
    ):
        write_spec("create-a.md", "garbage")
        write_spec("create-b.md", "garbage")
        original_rename = Path.rename

        def _rename(self, target):
            if self.name == "create-a.md":
                raise FileNotFoundError(2, "No such file or directory")
            return original_rename(self, target)

        with patch.object(Path, "rename", _rename):
            outcomes = poller.tick()

        assert [o.source.name for o in outcomes] == ["create-b.md"]
        assert (config.ops_dir / "create-b.FAILED.md").exists()

    def test_ledger_without_operation(
        self,
        poller: SpecPoller,
        registry: RegistryDatabase,
        write_spec: Callable[[str, str], Path],
    ):
        write_spec("delete-x.md", "garbage")
        poller.tick()
        entry = registry.list_transitions()[0]
        assert entry.operation is None
        assert entry.to_state == "FAILED"


@pytest.mark.integration
class TestSkipped:
    def test_non_actionable_files_untouched(
        self, poller: SpecPoller, config: WatcherConfig, write_spec: Callable[[str, str], Path]
    ):
        names = [
            "create-a.APPLIED.md",
            "create-b.FAILED.md",
            "modify-main.PENDING_APPROVAL.md",
            "README.md",
            "create-c.txt",
        ]
        for name in names:
            write_spec(name, "---\noperation: create\nagent: a\n---\n")

        assert poller.tick() == []
        assert _names(config.ops_dir) == sorted(names)

    def test_creates_watched_directory(self, poller: SpecPoller, config: WatcherConfig):
        assert not config.ops_dir.exists()
        assert poller.tick() == []
        assert config.ops_dir.is_dir()


@pytest.mark.integration
class TestSelfModification:
    def test_modify_gated_then_applied_after_approval(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        registry: RegistryDatabase,
        controller: str,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
    ):
        text = make_spec("modify", "orchestrator", "## CLAUDE.md\n```\n# Andy\nNew rules.\n```\n")
        write_spec("modify-main.md", text)
        doc = config.groups_dir / "main" / "CLAUDE.md"

        outcomes = poller.tick()

        assert outcomes[0].state == SpecFileState.PENDING_APPROVAL
        pending = config.ops_dir / "modify-main.PENDING_APPROVAL.md"
        assert pending.read_text().endswith(APPROVAL_NOTE)
        assert not doc.exists()

        # Still pending on later ticks.
        assert poller.tick() == []

        approved = pending.rename(config.ops_dir / "modify-main.APPROVED.md")
        outcomes = poller.tick()

        assert outcomes[0].state == SpecFileState.APPLIED
        assert not approved.exists()
        assert (config.ops_dir / "modify-main.APPLIED.md").exists()
        assert doc.read_text() == "# Andy\nNew rules.\n"
        states = [(t.from_state, t.to_state) for t in registry.list_transitions(spec_name="modify-main")]
        assert states == [("APPROVED", "APPLIED"), ("NEW", "PENDING_APPROVAL")]

    def test_approved_spec_can_still_fail(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
    ):
        # No registry entry owns the controller folder.
        write_spec("modify-main.md", make_spec("modify", "main", "## CLAUDE.md\nx\n"))
        poller.tick()
        (config.ops_dir / "modify-main.PENDING_APPROVAL.md").rename(
            config.ops_dir / "modify-main.APPROVED.md"
        )

        outcomes = poller.tick()

        assert outcomes[0].state == SpecFileState.FAILED
        assert 'Agent "main" not found' in (config.ops_dir / "modify-main.FAILED.md").read_text()

    def test_approved_but_unparsable(
        self, poller: SpecPoller, config: WatcherConfig, write_spec: Callable[[str, str], Path]
    ):
        write_spec("modify-main.APPROVED.md", "edited into nonsense")

        outcomes = poller.tick()

        assert outcomes[0].state == SpecFileState.FAILED
        failed = (config.ops_dir / "modify-main.FAILED.md").read_text()
        assert "Could not re-parse spec after approval" in failed

    def test_self_delete_rejected(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        registry: RegistryDatabase,
        controller: str,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
    ):
        write_spec("delete-main.md", make_spec("delete", "Orchestrator"))

        outcomes = poller.tick()

        assert outcomes[0].state == SpecFileState.FAILED
        failed = (config.ops_dir / "delete-main.FAILED.md").read_text()
        assert "Cannot delete the Orchestrator." in failed
        assert registry.get_agent(controller) is not None


@pytest.mark.integration
class TestLedgerAndLoop:
    def test_ledger_failure_does_not_block_rename(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        registry: RegistryDatabase,
        write_spec: Callable[[str, str], Path],
    ):
        write_spec("create-x.md", "garbage")
        with patch.object(
            registry, "record_transition", side_effect=sqlite3.OperationalError("locked")
        ):
            outcomes = poller.tick()
        assert outcomes[0].state == SpecFileState.FAILED
        assert (config.ops_dir / "create-x.FAILED.md").exists()

    def test_run_forever_ticks_then_stops(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
        instructions_section: Callable[..., str],
    ):
        write_spec("create-billing.md", make_spec("create", "billing", instructions_section(3)))
        stop = threading.Event()
        stop.set()

        poller.run_forever(stop)

        assert (config.ops_dir / "create-billing.APPLIED.md").exists()

    def test_run_forever_survives_tick_errors(self, poller: SpecPoller):
        stop = threading.Event()
        stop.set()
        with patch.object(SpecPoller, "tick", side_effect=RuntimeError("boom")) as tick:
            poller.run_forever(stop)
        tick.assert_called_once()

    def test_settings_written_through_loop(
        self,
        poller: SpecPoller,
        config: WatcherConfig,
        env_file: Path,
        write_spec: Callable[[str, str], Path],
        make_spec: Callable[..., str],
        instructions_section: Callable[..., str],
    ):
        body = instructions_section(5) + "\n## API Keys\n- BILLING_API_KEY: $BILLING_API_KEY\n"
        write_spec("create-billing.md", make_spec("create", "billing", body, model="opus"))

        poller.tick()

        settings_path = config.data_dir / "sessions" / "billing-specialist" / ".claude" / "settings.json"
        env = json.loads(settings_path.read_text())["env"]
        assert env["BILLING_API_KEY"] == "sk-billing-123"
        assert env["CLAUDE_CODE_USE_MODEL"] == "claude-opus-4-6"
