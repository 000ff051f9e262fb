"""FastAPI web application for tasksync."""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Callable

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Response, status
from sqlalchemy.orm import Session

from tasksync.api.calendar_models import (
    CalendarConfigResponse,
    SaveTokensRequest,
    SyncTaskResponse,
    TaskCreateRequest,
    TaskResponse,
    TaskUpdateRequest,
    TasksListResponse,
    UpdateConfigRequest,
)
from tasksync.auth.dependencies import get_current_user
from tasksync.database.calendar_config_repository import CalendarConfigRepository
from tasksync.database.database import get_db, get_session_factory, init_db
from tasksync.database.repository import TaskRepository
from tasksync.integrations.google_calendar import GoogleCalendarClient
from tasksync.models.sync_result import SyncResult
from tasksync.models.task import Task, SOURCE_API
from tasksync.models.user import User
from tasksync.sync.errors import (
    CredentialsExpiredError,
    NotConnectedError,
    PersistenceError,
    ProviderAPIError,
    SyncDisabledError,
    TaskNotFoundError,
)
from tasksync.sync.orchestrator import ClientFactory, SyncOrchestrator
from tasksync.sync.retroactive import run_retroactive_sync
from tasksync.sync.transcoder import is_valid_timezone

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


# Initialize FastAPI app
app = FastAPI(
    title="tasksync API",
    description="Keeps your tasks and your Google Calendar in sync, both ways",
    version="0.1.0",
    lifespan=lifespan,
)


def get_calendar_client_factory() -> ClientFactory:
    """Builds the provider client for a sync pass (overridden in tests)."""
    return GoogleCalendarClient.from_config


def get_background_session_factory() -> Callable[[], Session]:
    """Session factory for work that outlives the request (overridden in tests)."""
    return get_session_factory()


@app.get("/health")
async def health():
    return {"status": "ok"}


# ----------------------------------------------------------------------
# Calendar connection
# ----------------------------------------------------------------------

@app.get("/calendar/config", response_model=CalendarConfigResponse)
async def get_calendar_config(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the current user's calendar connection (is_connected=false if none)."""
    config = CalendarConfigRepository(db).get(current_user.id)
    return CalendarConfigResponse.from_config(config)


@app.post("/calendar/tokens", response_model=CalendarConfigResponse)
async def save_calendar_tokens(
    request: SaveTokensRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    session_factory: Callable[[], Session] = Depends(get_background_session_factory),
    client_factory: ClientFactory = Depends(get_calendar_client_factory),
):
    """Connect (or reconnect) Google Calendar, then push existing tasks in the background."""
    if not request.access_token.strip() or not request.refresh_token.strip():
        raise HTTPException(status_code=400, detail="access_token and refresh_token are required")

    expiry = datetime.utcnow() + timedelta(seconds=request.expires_in)
    try:
        config = CalendarConfigRepository(db).upsert_credentials(
            current_user.id,
            request.access_token,
            request.refresh_token,
            expiry,
            account_email=request.account_email,
        )
    except RuntimeError as e:
        # Missing or wrong TOKEN_ENCRYPTION_KEY
        logger.error(f"Failed to save calendar tokens for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    background_tasks.add_task(
        run_retroactive_sync,
        current_user.id,
        session_factory=session_factory,
        client_factory=client_factory,
    )
    return CalendarConfigResponse.from_config(config)


@app.patch("/calendar/config", response_model=CalendarConfigResponse)
async def update_calendar_config(
    request: UpdateConfigRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update sync preferences."""
    if request.timezone is not None and not is_valid_timezone(request.timezone):
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {request.timezone}")

    config = CalendarConfigRepository(db).update_preferences(
        current_user.id,
        is_enabled=request.is_enabled,
        sync_direction=request.sync_direction,
        calendar_id=request.calendar_id,
        timezone=request.timezone,
    )
    if config is None:
        raise HTTPException(status_code=404, detail="Google Calendar not connected")
    return CalendarConfigResponse.from_config(config)


@app.delete("/calendar/config", status_code=status.HTTP_204_NO_CONTENT)
async def disconnect_calendar(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Disconnect Google Calendar. Tasks are kept; their event links are cleared."""
    if not CalendarConfigRepository(db).delete(current_user.id):
        raise HTTPException(status_code=404, detail="Google Calendar not connected")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ----------------------------------------------------------------------
# Sync
# ----------------------------------------------------------------------

@app.post("/calendar/sync", response_model=SyncResult)
def sync_calendar(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    client_factory: ClientFactory = Depends(get_calendar_client_factory),
):
    """Run a full two-way sync pass for the current user."""
    config = CalendarConfigRepository(db).get(current_user.id)
    if config is None:
        raise HTTPException(status_code=404, detail="Google Calendar not connected")
    if not config.is_enabled:
        raise HTTPException(status_code=400, detail="Google Calendar sync is disabled")

    try:
        return SyncOrchestrator(db, client_factory).sync(current_user.id)
    except CredentialsExpiredError as e:
        raise HTTPException(status_code=401, detail=str(e))


@app.post("/calendar/sync-task/{task_id}", response_model=SyncTaskResponse)
def sync_single_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    client_factory: ClientFactory = Depends(get_calendar_client_factory),
):
    """Push one task to Google Calendar now."""
    try:
        event_id = SyncOrchestrator(db, client_factory).push_single_task(current_user.id, task_id)
    except (NotConnectedError, TaskNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SyncDisabledError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CredentialsExpiredError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except ProviderAPIError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return SyncTaskResponse(external_event_id=event_id)


# ----------------------------------------------------------------------
# Tasks
# ----------------------------------------------------------------------

@app.get("/tasks", response_model=TasksListResponse)
async def list_tasks(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List all tasks for the current user."""
    tasks = TaskRepository(db).get_all(current_user.id)
    return TasksListResponse(tasks=tasks, total=len(tasks))


@app.post("/tasks", response_model=TaskResponse, status_code=201)
def create_task(
    request: TaskCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    client_factory: ClientFactory = Depends(get_calendar_client_factory),
):
    """Create a task and push it to the calendar when sync applies."""
    now = datetime.utcnow()
    task = Task(
        id=str(uuid.uuid4()),
        user_id=current_user.id,
        source_type=SOURCE_API,
        title=request.title,
        description=request.description,
        date=request.date,
        scheduled_start=request.scheduled_start,
        scheduled_end=request.scheduled_end,
        created_at=now,
        updated_at=now,
    )
    repo = TaskRepository(db)
    try:
        created = repo.create(task)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to create task: {type(e).__name__}: {str(e)}")

    if SyncOrchestrator(db, client_factory).sync_task_on_change(current_user.id, created.id):
        created = repo.get(current_user.id, created.id)
    return TaskResponse(task=created)


@app.put("/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: str,
    request: TaskUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    client_factory: ClientFactory = Depends(get_calendar_client_factory),
):
    """Update a task and push the change to the calendar when sync applies."""
    repo = TaskRepository(db)
    task = repo.get(current_user.id, task_id)
    if not task:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")

    changes = request.model_dump(exclude_unset=True)
    updated = task.model_copy(update={**changes, "updated_at": datetime.utcnow()})
    try:
        updated = repo.update(updated)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update task: {type(e).__name__}: {str(e)}")

    if SyncOrchestrator(db, client_factory).sync_task_on_change(current_user.id, task_id):
        updated = repo.get(current_user.id, task_id)
    return TaskResponse(task=updated)


@app.delete("/tasks/{task_id}", status_code=204)
def delete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    client_factory: ClientFactory = Depends(get_calendar_client_factory),
):
    """Delete a task and its calendar event."""
    repo = TaskRepository(db)
    task = repo.get(current_user.id, task_id)
    if not task:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")

    if task.external_event_id:
        try:
            SyncOrchestrator(db, client_factory).delete_external_event(current_user.id, task.external_event_id)
        except (CredentialsExpiredError, ProviderAPIError) as e:
            # The local delete still goes ahead; the event stays on the calendar.
            logger.warning(f"Failed to delete calendar event for task {task_id}: {e}")

    repo.delete(current_user.id, task_id)
    return Response(status_code=204)
