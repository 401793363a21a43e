"""
Celery tasks for remote sync.

Provides the Celery-backed job runner used by the sync coordinator and
the task that executes one remote sync run.
"""

import logging

from celery import shared_task
from celery.result import AsyncResult
from django.conf import settings
from django.utils.module_loading import import_string

from photosync.sync.coordinator import SYNC_JOB_NAME
from photosync.sync.models import ScheduledJob
from photosync.sync.scheduling import BackoffPolicy, JobConstraints, JobResult, JobRunner

logger = logging.getLogger(__name__)

# Celery states in which a task hasn't started running yet
WAITING_STATES = {"PENDING", "RETRY"}


def cancel_requested(task_id: str | None) -> bool:
    """Whether cancellation was requested for a task id."""
    if not task_id:
        return False
    return ScheduledJob.objects.filter(task_id=task_id, cancel_requested=True).exists()


def constraints_always_met(constraints: JobConstraints) -> bool:
    """Default constraint probe for hosts with no network or battery signal."""
    return True


def _constraints_met(constraints: JobConstraints) -> bool:
    probe = import_string(settings.SYNC_CONSTRAINT_PROBE)
    return bool(probe(constraints))


class CeleryJobRunner(JobRunner):
    """
    JobRunner on top of Celery.

    The id of the latest task for each unique name is kept on a
    ScheduledJob row. Replacing revokes the previous task if it hasn't
    started yet; cancelling sets a flag on the row that the running task
    polls.
    """

    def _task_for(self, name: str):
        if name == SYNC_JOB_NAME:
            return remote_sync_task
        raise ValueError(f"Unknown job: {name}")

    def enqueue_unique(
        self,
        name: str,
        replace_existing: bool,
        constraints: JobConstraints,
        backoff: BackoffPolicy,
    ) -> str:
        task = self._task_for(name)

        previous = ScheduledJob.objects.filter(name=name).first()
        if previous is not None and not previous.cancel_requested:
            previous_result = AsyncResult(previous.task_id)
            if previous_result.state in WAITING_STATES:
                if not replace_existing:
                    logger.debug(f"Job {name} already pending ({previous.task_id})")
                    return previous.task_id
                previous_result.revoke()
                logger.debug(f"Replaced pending job {name} ({previous.task_id})")

        result = task.apply_async(
            kwargs={
                "constraints": constraints.to_dict(),
                "backoff": backoff.to_dict(),
            }
        )
        ScheduledJob.objects.update_or_create(
            name=name,
            defaults={"task_id": result.id, "cancel_requested": False},
        )
        logger.info(f"Enqueued job {name} ({result.id})")
        return result.id

    def cancel_unique(self, name: str) -> bool:
        job = ScheduledJob.objects.filter(name=name).first()
        if job is None:
            return False

        ScheduledJob.objects.filter(pk=job.pk).update(cancel_requested=True)
        AsyncResult(job.task_id).revoke()
        logger.info(f"Cancellation requested for job {name} ({job.task_id})")
        return True


def _retry_or_give_up(task, policy: BackoffPolicy, services) -> dict:
    """
    Schedule the next attempt, or report failure once retries are used up.

    Raises:
        celery.exceptions.Retry: When another attempt was scheduled
    """
    max_retries = settings.SYNC_MAX_RETRIES
    attempt = task.request.retries
    if attempt >= max_retries:
        logger.error(f"Sync gave up after {attempt} retries")
        services.coordinator.on_worker_finished(False)
        return {"status": JobResult.FAILURE.value}

    countdown = policy.delay_for(attempt)
    logger.info(f"Sync will retry in {countdown}s (attempt {attempt + 1} of {max_retries})")
    raise task.retry(countdown=countdown, max_retries=max_retries)


@shared_task(bind=True, max_retries=None)
def remote_sync_task(self, constraints: dict | None = None, backoff: dict | None = None, reason: str = ""):
    """
    Run one remote sync.

    Args:
        constraints: Serialized JobConstraints
        backoff: Serialized BackoffPolicy
        reason: Why the sync was requested (recorded on the session)
    """
    from photosync.services import get_services
    from photosync.sync.cancellation import CancellationToken

    constraints = JobConstraints.from_dict(constraints or {})
    policy = BackoffPolicy.from_dict(backoff or {})
    task_id = self.request.id
    services = get_services()

    token = CancellationToken(probe=lambda: cancel_requested(task_id))
    if token.cancelled:
        logger.info(f"Sync task {task_id} cancelled before start")
        services.coordinator.on_worker_finished(False)
        return {"status": "cancelled"}

    if not _constraints_met(constraints):
        logger.info("Sync constraints not met, deferring")
        return _retry_or_give_up(self, policy, services)

    result = services.sync_job().run(token, reason=reason)

    if result == JobResult.RETRY:
        return _retry_or_give_up(self, policy, services)

    return {"status": result.value}
