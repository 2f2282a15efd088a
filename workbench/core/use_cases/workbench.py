"""
Workbench use case — wire configuration into a ready-to-use runtime.

Every entry point (interactive shell, one-shot CLI commands, tests)
builds the same set of collaborators through ``open_workbench``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from workbench.core.config.loader import WorkbenchConfig, load_config
from workbench.core.context import InstallContext, build_context
from workbench.core.engine.orchestrator import Notify, Orchestrator
from workbench.core.persistence.run_log import RunLog
from workbench.core.persistence.session_store import SessionStore
from workbench.core.services.registry import ActionRegistry

logger = logging.getLogger(__name__)


@dataclass
class Workbench:
    """The runtime collaborators for one process."""

    config: WorkbenchConfig
    context: InstallContext
    registry: ActionRegistry
    store: SessionStore
    run_log: RunLog
    orchestrator: Orchestrator


def open_workbench(
    config: WorkbenchConfig | None = None,
    config_path: Path | None = None,
    gpu_vendors: list[str] | None = None,
    boot_id: str | None = None,
    notify: Notify | None = None,
) -> Workbench:
    """Load config, discover actions and build the orchestrator.

    Raises:
        ConfigError: If the configuration cannot be loaded.
    """
    if config is None:
        config = load_config(config_path)

    context = build_context(config, gpu_vendors=gpu_vendors, boot_id=boot_id)
    registry = ActionRegistry.from_config(config)
    store = SessionStore(config.session_file)
    run_log = RunLog(config.log_path, config.ledger_file, retention=config.log_retention)
    orchestrator = Orchestrator(registry, context, store, run_log, notify=notify)

    logger.info(
        "Workbench ready: %d actions, GPUs=%s, root=%s",
        len(registry), list(context.gpu_vendors) or "none", config.root,
    )
    return Workbench(
        config=config,
        context=context,
        registry=registry,
        store=store,
        run_log=run_log,
        orchestrator=orchestrator,
    )
