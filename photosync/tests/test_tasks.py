"""Tests for the Celery job runner and sync task."""

from unittest.mock import MagicMock, patch

from celery.exceptions import Retry
from django.test import TestCase, override_settings

from photosync.models import SyncStatus
from photosync.services import build_services
from photosync.sync.coordinator import SYNC_JOB_NAME
from photosync.sync.models import ScheduledJob
from photosync.sync.scheduling import BackoffPolicy, JobConstraints, JobResult, NetworkType
from photosync.tasks import CeleryJobRunner, cancel_requested, remote_sync_task


def constraints_never_met(constraints):
    return False


class CeleryJobRunnerTests(TestCase):
    def setUp(self):
        self.runner = CeleryJobRunner()
        self.constraints = JobConstraints(network=NetworkType.UNMETERED)
        self.backoff = BackoffPolicy()

    @patch("photosync.tasks.remote_sync_task.apply_async")
    def test_enqueue_passes_serialized_policies(self, mock_apply):
        mock_apply.return_value = MagicMock(id="task-1")

        task_id = self.runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)

        self.assertEqual(task_id, "task-1")
        kwargs = mock_apply.call_args.kwargs["kwargs"]
        self.assertEqual(kwargs["constraints"]["network"], "unmetered")
        self.assertEqual(kwargs["backoff"]["initial_seconds"], 30)

    @patch("photosync.tasks.AsyncResult")
    @patch("photosync.tasks.remote_sync_task.apply_async")
    def test_replace_revokes_pending_task(self, mock_apply, mock_result):
        mock_apply.side_effect = [MagicMock(id="task-1"), MagicMock(id="task-2")]
        mock_result.return_value.state = "PENDING"

        self.runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)
        task_id = self.runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)

        self.assertEqual(task_id, "task-2")
        mock_result.assert_called_with("task-1")
        mock_result.return_value.revoke.assert_called_once()

    @patch("photosync.tasks.AsyncResult")
    @patch("photosync.tasks.remote_sync_task.apply_async")
    def test_keep_existing_pending_task(self, mock_apply, mock_result):
        mock_apply.return_value = MagicMock(id="task-1")
        mock_result.return_value.state = "PENDING"

        self.runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)
        task_id = self.runner.enqueue_unique(SYNC_JOB_NAME, False, self.constraints, self.backoff)

        self.assertEqual(task_id, "task-1")
        self.assertEqual(mock_apply.call_count, 1)

    @patch("photosync.tasks.AsyncResult")
    @patch("photosync.tasks.remote_sync_task.apply_async")
    def test_finished_task_is_not_revoked(self, mock_apply, mock_result):
        mock_apply.side_effect = [MagicMock(id="task-1"), MagicMock(id="task-2")]
        mock_result.return_value.state = "SUCCESS"

        self.runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)
        self.runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)

        mock_result.return_value.revoke.assert_not_called()

    @patch("photosync.tasks.AsyncResult")
    @patch("photosync.tasks.remote_sync_task.apply_async")
    def test_cancel_sets_flag(self, mock_apply, mock_result):
        mock_apply.return_value = MagicMock(id="task-1")
        self.runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)

        self.assertTrue(self.runner.cancel_unique(SYNC_JOB_NAME))

        self.assertTrue(cancel_requested("task-1"))
        mock_result.return_value.revoke.assert_called_once()

    @patch("photosync.tasks.AsyncResult")
    @patch("photosync.tasks.remote_sync_task.apply_async")
    def test_bookkeeping_is_shared_between_runners(self, mock_apply, mock_result):
        mock_apply.side_effect = [MagicMock(id="task-1"), MagicMock(id="task-2")]
        mock_result.return_value.state = "PENDING"
        web_runner = CeleryJobRunner()
        command_runner = CeleryJobRunner()

        web_runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)
        task_id = command_runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)

        self.assertEqual(task_id, "task-2")
        mock_result.assert_called_with("task-1")
        mock_result.return_value.revoke.assert_called_once()

        self.assertTrue(web_runner.cancel_unique(SYNC_JOB_NAME))
        self.assertTrue(cancel_requested("task-2"))
        self.assertFalse(cancel_requested("task-1"))

    @patch("photosync.tasks.AsyncResult")
    @patch("photosync.tasks.remote_sync_task.apply_async")
    def test_new_job_clears_cancellation(self, mock_apply, mock_result):
        mock_apply.side_effect = [MagicMock(id="task-1"), MagicMock(id="task-2")]
        self.runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)
        self.runner.cancel_unique(SYNC_JOB_NAME)

        self.runner.enqueue_unique(SYNC_JOB_NAME, True, self.constraints, self.backoff)

        job = ScheduledJob.objects.get(name=SYNC_JOB_NAME)
        self.assertEqual(job.task_id, "task-2")
        self.assertFalse(job.cancel_requested)
        self.assertFalse(cancel_requested("task-2"))

    def test_cancel_without_job(self):
        self.assertFalse(self.runner.cancel_unique(SYNC_JOB_NAME))

    def test_unknown_job_name(self):
        with self.assertRaises(ValueError):
            self.runner.enqueue_unique("other", True, self.constraints, self.backoff)


class RemoteSyncTaskTests(TestCase):
    @patch("photosync.services.get_services")
    def test_success(self, mock_services):
        mock_services.return_value.sync_job.return_value.run.return_value = JobResult.SUCCESS

        result = remote_sync_task.run(constraints={}, backoff={})

        self.assertEqual(result, {"status": "success"})

    @patch("photosync.services.get_services")
    def test_failure_is_not_retried(self, mock_services):
        mock_services.return_value.sync_job.return_value.run.return_value = JobResult.FAILURE

        with patch.object(remote_sync_task, "retry") as mock_retry:
            result = remote_sync_task.run()

        self.assertEqual(result, {"status": "failure"})
        mock_retry.assert_not_called()

    @override_settings(SYNC_MAX_RETRIES=4)
    @patch("photosync.services.get_services")
    def test_retry_uses_backoff(self, mock_services):
        mock_services.return_value.sync_job.return_value.run.return_value = JobResult.RETRY

        with patch.object(remote_sync_task, "retry", side_effect=Retry()) as mock_retry:
            with self.assertRaises(Retry):
                remote_sync_task.run(backoff={"kind": "exponential", "initial_seconds": 30})

        mock_retry.assert_called_once_with(countdown=30, max_retries=4)

    @override_settings(SYNC_CONSTRAINT_PROBE="photosync.tests.test_tasks.constraints_never_met")
    @patch("photosync.services.get_services")
    def test_unmet_constraints_defer(self, mock_services):
        with patch.object(remote_sync_task, "retry", side_effect=Retry()) as mock_retry:
            with self.assertRaises(Retry):
                remote_sync_task.run()

        mock_retry.assert_called_once()
        mock_services.return_value.sync_job.assert_not_called()

    @override_settings(SYNC_MAX_RETRIES=2)
    @patch("photosync.services.get_services")
    def test_gives_up_after_max_retries(self, mock_services):
        mock_services.return_value.sync_job.return_value.run.return_value = JobResult.RETRY

        with patch.object(remote_sync_task, "retry") as mock_retry:
            remote_sync_task.push_request(retries=2)
            try:
                result = remote_sync_task.run()
            finally:
                remote_sync_task.pop_request()

        self.assertEqual(result, {"status": "failure"})
        mock_retry.assert_not_called()
        mock_services.return_value.coordinator.on_worker_finished.assert_called_once_with(False)

    @override_settings(SYNC_MAX_RETRIES=0)
    def test_exhausted_retries_leave_error_state(self):
        services = build_services(job_runner=MagicMock(), remote_factory=lambda: None)
        services.state_store.set_status(SyncStatus.SYNCING)

        with patch("photosync.services.get_services", return_value=services):
            result = remote_sync_task.run()

        self.assertEqual(result, {"status": "failure"})
        self.assertEqual(services.state_store.get_status(), SyncStatus.ERROR)

    @override_settings(SYNC_MAX_RETRIES=0)
    @override_settings(SYNC_CONSTRAINT_PROBE="photosync.tests.test_tasks.constraints_never_met")
    @patch("photosync.services.get_services")
    def test_constraints_never_met_gives_up(self, mock_services):
        result = remote_sync_task.run()

        self.assertEqual(result, {"status": "failure"})
        mock_services.return_value.sync_job.assert_not_called()
        mock_services.return_value.coordinator.on_worker_finished.assert_called_once_with(False)

    @patch("photosync.services.get_services")
    def test_cancelled_before_start(self, mock_services):
        ScheduledJob.objects.create(name=SYNC_JOB_NAME, task_id="task-9", cancel_requested=True)

        remote_sync_task.push_request(id="task-9")
        try:
            result = remote_sync_task.run()
        finally:
            remote_sync_task.pop_request()

        self.assertEqual(result, {"status": "cancelled"})
        mock_services.return_value.sync_job.assert_not_called()
        mock_services.return_value.coordinator.on_worker_finished.assert_called_once_with(False)
