"""
ocmshare - Reliable outbound share delivery.

A share handed to ``ShareDispatchRetryJob.schedule`` becomes a queued
``DeliveryJob``. Each scheduler tick calls ``execute`` for the job; an
execution either skips (interval not elapsed), delivers and retires the
job, or records the failed attempt. After ``max_try`` failures the job is
abandoned.
"""

import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from .config import FederationConfig
from .exceptions import OCMError
from .models import DeliveryJob, DeliveryReply, FederatedShareRequest, JobOutcome
from .stores import JobQueue

logger = logging.getLogger("ocmshare.delivery")


class Transport(ABC):
    """Carries shares and notifications to remote servers."""

    @abstractmethod
    def send(self, share: FederatedShareRequest) -> DeliveryReply: ...

    @abstractmethod
    def notify(
        self,
        remote: str,
        notification_type: str,
        resource_type: str,
        provider_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]: ...


class ShareDispatchRetryJob:
    def __init__(
        self,
        transport: Transport,
        queue: JobQueue,
        config: Optional[FederationConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.transport = transport
        self.queue = queue
        self.config = config or FederationConfig()
        self.clock = clock

    def schedule(self, share: FederatedShareRequest, job_id: Optional[str] = None) -> DeliveryJob:
        """Queue ``share`` for delivery. The first tick attempts it right away."""
        job = DeliveryJob(id=job_id or str(uuid.uuid4()), share=share, last_run=0, tries=0)
        self.queue.enqueue(job)
        logger.info(f"Share {share.provider_id} queued for {share.share_with} as job {job.id}")
        return job

    def execute(self, job: DeliveryJob) -> JobOutcome:
        now = self.clock()
        current = self.queue.claim(job.id, now, self.config.claim_timeout)
        if current is None:
            if self.queue.get(job.id) is None:
                logger.debug(f"Job {job.id} is no longer queued")
                return JobOutcome.SKIPPED
            logger.debug(f"Job {job.id} is already running elsewhere")
            return JobOutcome.IN_FLIGHT

        if now - current.last_run <= self.config.interval:
            self.queue.release(job.id)
            return JobOutcome.SKIPPED

        delivered = self._attempt(current)
        tries = current.tries + 1

        if delivered:
            self.queue.remove_job(job.id)
            logger.info(f"Job {job.id} delivered share to {current.share.share_with}")
            return JobOutcome.DELIVERED

        if tries > self.config.max_try:
            self.queue.remove_job(job.id)
            logger.error(
                f"Job {job.id} abandoned after {tries} attempts to reach "
                f"{current.share.share_with}"
            )
            return JobOutcome.ABANDONED

        self.queue.reschedule(job.id, tries, now)
        logger.warning(f"Job {job.id} delivery attempt {tries} failed, will retry")
        return JobOutcome.RETRY_SCHEDULED

    def _attempt(self, job: DeliveryJob) -> bool:
        try:
            reply = self.transport.send(job.share)
        except OCMError as e:
            logger.warning(f"Job {job.id} delivery failed ({e.kind.value}): {e.message}")
            return False
        except Exception:
            logger.exception(f"Job {job.id} delivery raised an unexpected error")
            return False

        if not reply.acknowledged:
            logger.warning(f"Job {job.id} delivery not acknowledged: {reply.status_code}")
        return reply.acknowledged

    def run_due(self) -> dict[str, JobOutcome]:
        """Execute every queued job once."""
        outcomes = {}
        for job in self.queue.list_jobs():
            outcomes[job.id] = self.execute(job)
        return outcomes
