"""
Notification queue
Publishes notification jobs to the ARQ worker. Routers schedule these with
BackgroundTasks so delivery never delays or fails the booking transition.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from arq import create_pool
from arq.connections import ArqRedis

from ..config import NOTIFICATION_ENQUEUE_TIMEOUT
from ..worker import get_redis_settings

logger = logging.getLogger(__name__)

_pool: Optional[ArqRedis] = None


@dataclass
class QueuedJob:
    """One job for the worker: the task name and its positional arguments"""

    function: str
    args: tuple = field(default_factory=tuple)


def push_jobs(pairs: list[tuple[int, dict]]) -> list[QueuedJob]:
    """Wrap (recipient_id, notification) pairs as push notification jobs"""
    return [QueuedJob("send_push_notification_task", (user_id, notification)) for user_id, notification in pairs]


def sms_otp_job(booking_id: int, otp: str) -> QueuedJob:
    return QueuedJob("send_completion_otp_sms_task", (booking_id, otp))


async def get_pool() -> ArqRedis:
    global _pool
    if _pool is None:
        _pool = await create_pool(get_redis_settings())
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


async def enqueue_jobs(jobs: list[QueuedJob]) -> int:
    """
    Hand jobs to the worker queue, best effort.

    Each enqueue is bounded by NOTIFICATION_ENQUEUE_TIMEOUT; failures are logged
    and skipped. Returns the number of jobs queued.
    """
    queued = 0
    for job in jobs:
        try:
            pool = await asyncio.wait_for(get_pool(), timeout=NOTIFICATION_ENQUEUE_TIMEOUT)
            await asyncio.wait_for(
                pool.enqueue_job(job.function, *job.args), timeout=NOTIFICATION_ENQUEUE_TIMEOUT
            )
            queued += 1
            logger.info(f"📲 Queued {job.function}")
        except Exception as e:
            logger.error(f"❌ Failed to queue {job.function}: {type(e).__name__}: {e}")
    return queued
