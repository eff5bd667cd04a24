"""
Post-mutation notification hook.

Services call ``notify`` after a unit of work has committed. Delivery is
fire-and-forget: a failing hook is logged and never fails the request.
"""
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class MutationHook:
    """
    Collaborator notified of committed state changes.

    Subclasses push notifications or invalidate caches; the base class does
    nothing.
    """

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        return None


class LoggingHook(MutationHook):
    """Default hook: records the event in the structured log."""

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        logger.debug("Mutation event", mutation_event=event, **payload)


async def notify(hook: MutationHook | None, event: str, **payload: Any) -> None:
    if hook is None:
        return
    try:
        await hook.emit(event, payload)
    except Exception as e:
        logger.warning(
            "Failed to deliver mutation event",
            mutation_event=event,
            error=str(e),
        )
