"""
Task Endpoints
--------------
Administrator task management (``/api/tasks``) and the expert-side
assignment actions (``/api/expert/tasks``).
"""

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from loguru import logger

from app.auth.dependencies import get_current_user, require_expert, require_task_admin
from app.auth.models import AuthTokenPayload
from app.core.exceptions import PlatformError, ValidationFailed
from app.models.request_models import TaskAssignRequest, TaskCreateRequest, TaskUpdateRequest
from app.models.response_models import success_response
from app.psql_db_services.tasks_service import TasksService

# ============================================================================
# ROUTER INITIALIZATION
# ============================================================================

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])
expert_router = APIRouter(prefix="/api/expert/tasks", tags=["Expert Tasks"])


def _internal_error(action: str, e: Exception) -> HTTPException:
    logger.exception(f"Error during {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


# ============================================================================
# ADMIN ENDPOINTS
# ============================================================================


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a task")
async def create_task(
    request: TaskCreateRequest,
    current_user: AuthTokenPayload = Depends(require_task_admin),
):
    """
    Create a task and optionally fan it out to experts as PENDING assignments.

    Returns:
        {"taskId", "assignedCount"}
    """
    try:
        result = await TasksService().create_task(current_user, request)
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=success_response(result, "Task created"),
        )
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e))
    except Exception as e:
        raise _internal_error("create task", e)


@router.get("", summary="List tasks visible to me")
async def list_tasks(current_user: AuthTokenPayload = Depends(get_current_user)):
    try:
        tasks = await TasksService().list_tasks(current_user)
        return success_response(jsonable_encoder(tasks))
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("list tasks", e)


@router.get("/{task_id}", summary="Get a task with its assignments")
async def get_task(task_id: str, current_user: AuthTokenPayload = Depends(get_current_user)):
    try:
        task = await TasksService().get_task(current_user, task_id)
        return success_response(jsonable_encoder(task))
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("load task", e)


@router.patch("/{task_id}", summary="Update a task")
async def update_task(
    task_id: str,
    request: TaskUpdateRequest,
    current_user: AuthTokenPayload = Depends(require_task_admin),
):
    try:
        task = await TasksService().update_task(current_user, task_id, request)
        return success_response(jsonable_encoder(task), "Task updated")
    except PlatformError:
        raise
    except ValueError as e:
        raise ValidationFailed(str(e))
    except Exception as e:
        raise _internal_error("update task", e)


@router.post("/{task_id}/assign", summary="Assign experts to a task")
async def assign_task(
    task_id: str,
    request: TaskAssignRequest,
    current_user: AuthTokenPayload = Depends(require_task_admin),
):
    try:
        assigned = await TasksService().assign_experts(current_user, task_id, request.expert_ids)
        return success_response({"assignedCount": assigned}, f"{assigned} expert(s) assigned")
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error("assign task", e)


# ============================================================================
# EXPERT ENDPOINTS
# ============================================================================


async def _transition(task_id: str, action: str, current_user: AuthTokenPayload):
    try:
        result = await TasksService().transition_assignment(current_user, task_id, action)
        return success_response(result, f"Task {result['status'].lower()}")
    except PlatformError:
        raise
    except Exception as e:
        raise _internal_error(f"{action} task", e)


@expert_router.post("/{task_id}/accept", summary="Accept a pending task")
async def accept_task(task_id: str, current_user: AuthTokenPayload = Depends(require_expert)):
    return await _transition(task_id, "accept", current_user)


@expert_router.post("/{task_id}/decline", summary="Decline a pending task")
async def decline_task(task_id: str, current_user: AuthTokenPayload = Depends(require_expert)):
    return await _transition(task_id, "decline", current_user)


@expert_router.post("/{task_id}/complete", summary="Complete an accepted task")
async def complete_task(task_id: str, current_user: AuthTokenPayload = Depends(require_expert)):
    return await _transition(task_id, "complete", current_user)
