"""
Status prober — maps detection predicates to live ActionStatus.

Probing is read-only by contract (the predicate author's obligation); the
prober itself only enforces the timeout and the result mapping.  Probes
may run in parallel, but ``probe_all`` blocks until every probe has
finished, so a render never sees a half-refreshed menu.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Sequence

from workbench.adapters.base import Action
from workbench.core.context import InstallContext
from workbench.core.errors import ProbeError
from workbench.core.models.action import ActionStatus

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


def probe(action: Action, context: InstallContext, timeout: float = DEFAULT_TIMEOUT) -> ActionStatus:
    """Determine one action's status.  Never raises."""
    descriptor = action.describe()
    if not descriptor.has_detect:
        return ActionStatus.UNKNOWN

    try:
        status = action.detect(context, timeout)
    except ProbeError as e:
        logger.warning("Probe failed: %s", e)
        return ActionStatus.ERROR
    except Exception as e:
        logger.error("Probe for %s raised: %s", descriptor.id, e)
        return ActionStatus.ERROR

    logger.debug("Probe %s → %s", descriptor.id, status.value)
    return status


def probe_all(
    actions: Sequence[Action],
    context: InstallContext,
    timeout: float = DEFAULT_TIMEOUT,
    max_workers: int = 8,
) -> dict[str, ActionStatus]:
    """Probe every action, in parallel, and wait for all of them.

    Returns:
        Mapping of action id → status, in the order of ``actions``.
    """
    results: dict[str, ActionStatus] = {
        a.describe().id: ActionStatus.UNKNOWN for a in actions
    }
    runnable = [a for a in actions if a.describe().has_detect]
    if not runnable:
        return results

    with concurrent.futures.ThreadPoolExecutor(
        max_workers=min(max_workers, len(runnable)),
    ) as pool:
        futures = {
            pool.submit(probe, a, context, timeout): a.describe().id for a in runnable
        }
        for future in concurrent.futures.as_completed(futures):
            results[futures[future]] = future.result()

    return results
