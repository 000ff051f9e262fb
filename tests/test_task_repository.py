"""Tests for TaskRepository CRUD and sync bookkeeping operations."""

import uuid
from datetime import date, datetime, time, timedelta

from tasksync.models.calendar_event import EventFields
from tasksync.models.task import Task, SOURCE_GOOGLE_CALENDAR


class TestTaskRepository:
    """Test TaskRepository CRUD operations."""

    def test_create_task(self, task_repository, sample_task, test_user_id):
        """Test creating a task."""
        created = task_repository.create(sample_task)

        assert created.id == sample_task.id
        assert created.title == sample_task.title
        assert created.user_id == test_user_id
        assert created.external_event_id is None

    def test_get_nonexistent_task(self, task_repository, test_user_id):
        """Test retrieving a nonexistent task returns None."""
        assert task_repository.get(test_user_id, "nonexistent-id") is None

    def test_get_is_scoped_to_user(self, task_repository, sample_task):
        created = task_repository.create(sample_task)
        assert task_repository.get("someone-else", created.id) is None

    def test_get_all_sorted_by_creation_date(self, task_repository, sample_task_base, test_user_id):
        """Test that get_all() returns tasks sorted by creation date (newest first)."""
        now = datetime.utcnow()
        for offset, title in ((2, "Task 3"), (1, "Task 2"), (0, "Task 1")):
            task_repository.create(Task(**{
                **sample_task_base,
                "id": str(uuid.uuid4()),
                "created_at": now - timedelta(minutes=offset),
                "title": title,
            }))

        assert [t.title for t in task_repository.get_all(test_user_id)] == ["Task 1", "Task 2", "Task 3"]

    def test_update_task(self, task_repository, sample_task, test_user_id):
        created = task_repository.create(sample_task)
        later = created.updated_at + timedelta(minutes=5)

        updated = task_repository.update(created.model_copy(update={
            "title": "Renamed",
            "scheduled_start": time(8, 30),
            "updated_at": later,
        }))

        assert updated.title == "Renamed"
        assert updated.scheduled_start == time(8, 30)
        assert updated.updated_at == later

    def test_delete_task(self, task_repository, sample_task, test_user_id):
        created = task_repository.create(sample_task)

        assert task_repository.delete(test_user_id, created.id) is True
        assert task_repository.get(test_user_id, created.id) is None
        assert task_repository.delete(test_user_id, created.id) is False


class TestDirtyTasks:
    """Test selection of tasks that need pushing."""

    def test_never_pushed_task_is_dirty(self, task_repository, make_task, test_user_id):
        task = make_task()
        assert [t.id for t in task_repository.list_dirty(test_user_id, date.today())] == [task.id]

    def test_synced_task_is_not_dirty(self, task_repository, make_task, test_user_id):
        task = make_task()
        task_repository.set_sync_bookkeeping(
            test_user_id, task.id,
            external_event_id="evt-1", calendar_id="primary", synced_at=task.updated_at + timedelta(seconds=1),
        )
        assert task_repository.list_dirty(test_user_id, date.today()) == []

    def test_edited_after_sync_is_dirty(self, task_repository, make_task, test_user_id):
        task = make_task()
        synced = task_repository.set_sync_bookkeeping(
            test_user_id, task.id,
            external_event_id="evt-1", calendar_id="primary", synced_at=task.updated_at + timedelta(seconds=1),
        )
        task_repository.update(synced.model_copy(update={"updated_at": synced.last_synced_at + timedelta(seconds=1)}))

        assert len(task_repository.list_dirty(test_user_id, date.today())) == 1

    def test_past_tasks_are_excluded(self, task_repository, make_task, test_user_id):
        make_task(date=date.today() - timedelta(days=3))
        assert task_repository.list_dirty(test_user_id, date.today()) == []

    def test_limit_and_order(self, task_repository, make_task, test_user_id, future_date):
        make_task(title="Later", date=future_date + timedelta(days=1))
        make_task(title="Afternoon", date=future_date, scheduled_start=time(15, 0))
        make_task(title="Morning", date=future_date, scheduled_start=time(8, 0))

        dirty = task_repository.list_dirty(test_user_id, date.today(), limit=2)

        assert [t.title for t in dirty] == ["Morning", "Afternoon"]


class TestSyncBookkeeping:
    """Test the sync-owned columns."""

    def test_bookkeeping_does_not_touch_updated_at(self, task_repository, make_task, test_user_id):
        task = make_task()
        synced_at = task.updated_at + timedelta(minutes=1)

        result = task_repository.set_sync_bookkeeping(
            test_user_id, task.id, external_event_id="evt-1", calendar_id="primary", synced_at=synced_at,
        )

        assert result.external_event_id == "evt-1"
        assert result.external_calendar_id == "primary"
        assert result.last_synced_at == synced_at
        assert result.updated_at == task.updated_at

    def test_edit_during_push_keeps_task_dirty(self, task_repository, make_task, test_user_id):
        """If the row changed after the push read it, the push is recorded but the edit stays dirty."""
        task = make_task()
        edited_at = task.updated_at + timedelta(seconds=30)
        task_repository.update(task.model_copy(update={"title": "Edited meanwhile", "updated_at": edited_at}))
        synced_at = edited_at + timedelta(seconds=30)

        result = task_repository.set_sync_bookkeeping(
            test_user_id, task.id,
            external_event_id="evt-1", calendar_id="primary",
            synced_at=synced_at,
            pushed_updated_at=task.updated_at,
        )

        assert result.last_synced_at == synced_at
        assert result.updated_at > synced_at
        assert result.title == "Edited meanwhile"
        assert result.is_dirty()

    def test_edit_after_push_time_keeps_its_timestamp(self, task_repository, make_task, test_user_id):
        task = make_task()
        synced_at = task.updated_at + timedelta(seconds=30)
        edited_at = synced_at + timedelta(seconds=5)
        task_repository.update(task.model_copy(update={"updated_at": edited_at}))

        result = task_repository.set_sync_bookkeeping(
            test_user_id, task.id,
            external_event_id="evt-1", calendar_id="primary",
            synced_at=synced_at,
            pushed_updated_at=task.updated_at,
        )

        assert result.updated_at == edited_at
        assert result.is_dirty()

    def test_lookup_by_external_id(self, task_repository, make_task, test_user_id):
        task = make_task(external_event_id="evt-9")
        found = task_repository.get_by_external_id(test_user_id, "evt-9")

        assert found.id == task.id
        assert task_repository.get_by_external_id(test_user_id, "evt-missing") is None
        assert task_repository.get_by_external_id("someone-else", "evt-9") is None

    def test_create_and_update_from_import(self, task_repository, test_user_id):
        synced_at = datetime(2026, 2, 20, 8, 0, 0)
        fields = EventFields(title="Dentist", date=date(2026, 3, 1), scheduled_start=time(11, 0))

        created = task_repository.create_from_import(
            test_user_id, fields, external_event_id="ext-1", calendar_id="primary", synced_at=synced_at,
        )

        assert created.source_type == SOURCE_GOOGLE_CALENDAR
        assert created.external_event_id == "ext-1"
        assert created.last_synced_at == created.updated_at == synced_at
        assert not created.is_dirty()

        resynced_at = synced_at + timedelta(hours=1)
        updated = task_repository.update_from_import(
            test_user_id, created.id, fields.model_copy(update={"title": "Dentist (moved)"}), synced_at=resynced_at,
        )

        assert updated.title == "Dentist (moved)"
        assert updated.last_synced_at == updated.updated_at == resynced_at

    def test_delete_by_external_id(self, task_repository, make_task, test_user_id):
        make_task(external_event_id="evt-1")

        assert task_repository.delete_by_external_id(test_user_id, "evt-1") == 1
        assert task_repository.delete_by_external_id(test_user_id, "evt-1") == 0
