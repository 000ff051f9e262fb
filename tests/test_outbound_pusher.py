"""Tests for pushing local tasks to the calendar provider."""

import pytest
from datetime import date, time, timedelta
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from tasksync.sync.errors import CredentialsExpiredError, PersistenceError, ProviderAPIError
from tasksync.sync.pusher import OutboundPusher


@pytest.fixture
def pusher(task_repository, fake_client, connected_config):
    return OutboundPusher(task_repository, fake_client, connected_config)


class TestPushTask:
    """Test pushing a single task."""

    def test_first_push_creates_event_and_records_link(self, pusher, make_task, task_repository, fake_client, test_user_id):
        task = make_task(title="Gym", scheduled_start=time(18, 0), scheduled_end=time(19, 30))

        event_id = pusher.push_task(task)

        assert fake_client.call_count("insert_event") == 1
        assert fake_client.events[event_id]["summary"] == "Gym"
        stored = task_repository.get(test_user_id, task.id)
        assert stored.external_event_id == event_id
        assert stored.external_calendar_id == "primary"
        assert not stored.is_dirty()

    def test_payload_uses_configured_timezone(self, pusher, make_task, fake_client):
        task = make_task(title="Gym", date=date(2026, 2, 16), scheduled_start=time(18, 0), scheduled_end=time(19, 30))

        pusher.push_task(task)

        _, body = fake_client.calls[0]
        assert body["start"] == {"dateTime": "2026-02-16T18:00:00", "timeZone": "Europe/Paris"}
        assert body["end"] == {"dateTime": "2026-02-16T19:30:00", "timeZone": "Europe/Paris"}

    def test_repeated_push_updates_instead_of_duplicating(self, pusher, make_task, task_repository, fake_client, test_user_id):
        task = make_task()

        first_id = pusher.push_task(task)
        second_id = pusher.push_task(task_repository.get(test_user_id, task.id))

        assert first_id == second_id
        assert fake_client.call_count("insert_event") == 1
        assert fake_client.call_count("patch_event") == 1
        assert len(fake_client.events) == 1

    def test_task_linked_to_another_calendar_is_created_in_configured_one(self, pusher, make_task, task_repository, fake_client, test_user_id):
        task = make_task(external_event_id="evt-old", external_calendar_id="old-calendar")

        event_id = pusher.push_task(task)

        assert event_id != "evt-old"
        assert fake_client.call_count("insert_event") == 1
        assert fake_client.call_count("patch_event") == 0
        stored = task_repository.get(test_user_id, task.id)
        assert stored.external_event_id == event_id
        assert stored.external_calendar_id == "primary"
        assert not stored.is_dirty()

    def test_provider_error_leaves_task_dirty(self, pusher, make_task, task_repository, fake_client, test_user_id):
        task = make_task()
        fake_client.fail_always("insert_event", ProviderAPIError(status_code=500, body="Backend Error"))

        with pytest.raises(ProviderAPIError):
            pusher.push_task(task)

        assert task_repository.get(test_user_id, task.id).is_dirty()

    def test_bookkeeping_failure_is_a_persistence_error(self, pusher, make_task, task_repository):
        task = make_task()

        with patch.object(task_repository, "set_sync_bookkeeping", side_effect=OperationalError("UPDATE", {}, Exception("locked"))):
            with pytest.raises(PersistenceError):
                pusher.push_task(task)


class TestPushBatch:
    """Test batch pushes and error aggregation."""

    def test_one_failure_does_not_stop_the_batch(self, pusher, make_task, fake_client, future_date):
        for i in range(1, 6):
            make_task(title=f"Task {i}", date=future_date, scheduled_start=time(8 + i, 0))
        fake_client.fail_on("insert_event", 3, ProviderAPIError(status_code=500, body="Backend Error"))

        synced, errors = pusher.push_due_tasks(date.today())

        assert synced == 4
        assert len(errors) == 1
        assert "Task 3" in errors[0]
        assert fake_client.call_count("insert_event") == 5

    def test_expired_credentials_end_the_batch(self, pusher, make_task, fake_client):
        tasks = [make_task(title=f"Task {i}") for i in range(3)]
        fake_client.fail_on("insert_event", 2, CredentialsExpiredError())

        with pytest.raises(CredentialsExpiredError):
            pusher.push_tasks(tasks)

        assert fake_client.call_count("insert_event") == 2

    def test_push_due_tasks_only_pushes_dirty_future_tasks(self, pusher, make_task, fake_client, task_repository, test_user_id):
        make_task(title="Past", date=date.today() - timedelta(days=2))
        make_task(title="Future")
        already = make_task(title="Already synced")
        pusher.push_task(already)
        fake_client.calls.clear()

        synced, errors = pusher.push_due_tasks(date.today())

        assert (synced, errors) == (1, [])
        assert [call[1]["summary"] for call in fake_client.calls] == ["Future"]

    def test_push_due_tasks_respects_limit(self, pusher, make_task, fake_client):
        for i in range(4):
            make_task(title=f"Task {i}")

        synced, _ = pusher.push_due_tasks(date.today(), limit=2)

        assert synced == 2
        assert fake_client.call_count("insert_event") == 2
