"""Background sweep that removes expired sessions."""

import asyncio
import logging

from face_verify.services.lifecycle import SessionLifecycleController

logger = logging.getLogger(__name__)


async def run_expiry_sweeper(
    controller: SessionLifecycleController, interval_seconds: float
) -> None:
    """Expire sessions every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = controller.expire_sessions()
        except Exception:
            logger.exception("Expiry sweep failed")
            continue
        if removed:
            logger.info("Expiry sweep removed %s session(s)", len(removed))
