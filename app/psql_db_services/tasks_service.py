"""
Tasks Service
-------------
Work items created by administrators and fanned out to experts.

Each expert gets an independent ``expert_tasks`` row whose status only that
expert can drive:

    PENDING --accept--> ACCEPTED --complete--> COMPLETED
    PENDING --decline--> DECLINED
    IN_PROGRESS --complete--> COMPLETED
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy import func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import AuthTokenPayload
from app.auth.permissions import (
    Capability,
    ensure_same_tenant,
    has_capability,
    require_capability,
)
from app.core.database_connection import DatabaseManager
from app.core.database_schema import expert_tasks, new_id, tasks, users, utc_now
from app.core.exceptions import Forbidden, InvalidTransition, NotFound, ValidationFailed
from app.models.request_models import (
    AssignmentStatus,
    TaskCreateRequest,
    TaskStatus,
    TaskUpdateRequest,
    UserRole,
    UserStatus,
)
from app.psql_db_services.activity_log_service import ActivityAction, ActivityLogService
from app.psql_db_services.base_service import BaseDatabaseService
from app.psql_db_services.notifications_service import NotificationsService, NotificationType

EXPERT_TASKS_LINK = "/expert/tasks"
ADMIN_TASKS_LINK = "/admin/tasks"

# action -> (allowed current statuses, new status, activity action)
ASSIGNMENT_TRANSITIONS: Dict[str, Tuple[Sequence[str], str, str]] = {
    "accept": (
        [AssignmentStatus.PENDING.value],
        AssignmentStatus.ACCEPTED.value,
        ActivityAction.ACCEPT_TASK,
    ),
    "decline": (
        [AssignmentStatus.PENDING.value],
        AssignmentStatus.DECLINED.value,
        ActivityAction.DECLINE_TASK,
    ),
    "complete": (
        [AssignmentStatus.ACCEPTED.value, AssignmentStatus.IN_PROGRESS.value],
        AssignmentStatus.COMPLETED.value,
        ActivityAction.COMPLETE_TASK,
    ),
}

_ASSIGNED_COUNT = (
    select(func.count())
    .select_from(expert_tasks)
    .where(expert_tasks.c.task_id == tasks.c.id)
    .correlate(tasks)
    .scalar_subquery()
    .label("assigned_count")
)


class TasksService(BaseDatabaseService):
    """Task repository plus the per-expert assignment state machine."""

    def __init__(self, database_manager: Optional[DatabaseManager] = None):
        super().__init__(database_manager)
        self.activity = ActivityLogService(database_manager)
        self.notifications = NotificationsService(database_manager)

    # ========================================================================
    # HELPERS
    # ========================================================================

    async def _validate_experts(
        self, session: AsyncSession, caller: AuthTokenPayload, expert_ids: List[str]
    ) -> List[str]:
        """
        Deduplicate ids and check each names an active EXPERT in the caller's tenant.

        Raises:
            ValidationFailed: If any id is unknown, not an expert or not active
            Forbidden: TENANT_MISMATCH for an expert of another organization
        """
        unique_ids = list(dict.fromkeys(expert_ids))
        if not unique_ids:
            return []
        rows = await self.fetch_all(
            session,
            select(users.c.id, users.c.org_id).where(
                users.c.id.in_(unique_ids),
                users.c.role == UserRole.EXPERT.value,
                users.c.status == UserStatus.ACTIVE.value,
            ),
        )
        found = {row["id"] for row in rows}
        invalid = [expert_id for expert_id in unique_ids if expert_id not in found]
        if invalid:
            raise ValidationFailed(
                f"Not active experts: {', '.join(invalid)}", fields=["expert_ids"]
            )
        for row in rows:
            ensure_same_tenant(caller.role, caller.org_id, row["org_id"])
        return unique_ids

    async def _insert_assignments(
        self, session: AsyncSession, task: Dict[str, Any], expert_ids: List[str]
    ) -> List[str]:
        """Create PENDING rows for experts not yet assigned. Returns the new ids."""
        existing = await self.fetch_all(
            session,
            select(expert_tasks.c.expert_id).where(expert_tasks.c.task_id == task["id"]),
        )
        already = {row["expert_id"] for row in existing}
        new_ids = [expert_id for expert_id in expert_ids if expert_id not in already]
        now = utc_now()
        for expert_id in new_ids:
            await session.execute(
                insert(expert_tasks).values(
                    id=new_id(),
                    task_id=task["id"],
                    expert_id=expert_id,
                    status=AssignmentStatus.PENDING.value,
                    assigned_at=now,
                    updated_at=now,
                )
            )
            await self.notifications.create(
                session,
                user_id=expert_id,
                type=NotificationType.TASK,
                title="New Task Assigned",
                message=f"You have been assigned a new task: {task['title']}",
                link=EXPERT_TASKS_LINK,
            )
        return new_ids

    @staticmethod
    def _can_manage(caller: AuthTokenPayload, task: Dict[str, Any]) -> bool:
        if not has_capability(caller.role, Capability.CREATE_TASKS):
            return False
        if caller.is_superadmin:
            return True
        return task["created_by"] == caller.user_id or task["org_id"] == caller.org_id

    async def _get_task_row(self, session: AsyncSession, task_id: str) -> Dict[str, Any]:
        task = await self.fetch_one(
            session, select(tasks, _ASSIGNED_COUNT).where(tasks.c.id == task_id)
        )
        if not task:
            raise NotFound("Task not found")
        return task

    # ========================================================================
    # ADMIN OPERATIONS
    # ========================================================================

    async def create_task(
        self, caller: AuthTokenPayload, request: TaskCreateRequest
    ) -> Dict[str, Any]:
        """
        Create a task and optionally fan it out to experts.

        Returns:
            {"taskId": ..., "assignedCount": ...}
        """
        require_capability(caller.role, Capability.CREATE_TASKS)
        now = utc_now()
        task = {
            "id": new_id(),
            "title": request.title,
            "description": request.description,
            "domain": request.domain,
            "deadline": request.deadline.replace(tzinfo=None) if request.deadline else None,
            "priority": request.priority.value,
            "status": TaskStatus.OPEN.value,
            "created_by": caller.user_id,
            "org_id": caller.org_id,
            "created_at": now,
            "updated_at": now,
        }
        async with self.get_session() as session:
            expert_ids = await self._validate_experts(session, caller, request.expert_ids)
            await session.execute(insert(tasks).values(**task))
            assigned = await self._insert_assignments(session, task, expert_ids)
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=caller.org_id,
                action=ActivityAction.CREATE_TASK,
                entity_type="Task",
                entity_id=task["id"],
                details={"title": task["title"], "expertIds": assigned},
            )
        self.log_operation("CREATE", task["id"], additional_context=f"{len(assigned)} experts")
        return {"taskId": task["id"], "assignedCount": len(assigned)}

    async def list_tasks(self, caller: AuthTokenPayload) -> List[Dict[str, Any]]:
        """
        Tasks visible to the caller, newest first.

        - SUPERADMIN: every task
        - ADMIN: tasks it created or tasks of its organization
        - EXPERT: tasks assigned to it, with its own ``assignment_status``
        """
        if caller.role == UserRole.EXPERT:
            statement = (
                select(
                    tasks,
                    _ASSIGNED_COUNT,
                    expert_tasks.c.status.label("assignment_status"),
                    expert_tasks.c.assigned_at,
                    expert_tasks.c.completed_at,
                )
                .select_from(tasks.join(expert_tasks, expert_tasks.c.task_id == tasks.c.id))
                .where(expert_tasks.c.expert_id == caller.user_id)
            )
        elif has_capability(caller.role, Capability.CREATE_TASKS):
            statement = select(tasks, _ASSIGNED_COUNT)
            if not caller.is_superadmin:
                statement = statement.where(
                    or_(tasks.c.created_by == caller.user_id, tasks.c.org_id == caller.org_id)
                )
        else:
            raise Forbidden("Tasks are available to experts and administrators only")

        async with self.get_session() as session:
            return await self.fetch_all(session, statement.order_by(tasks.c.created_at.desc()))

    async def get_task(self, caller: AuthTokenPayload, task_id: str) -> Dict[str, Any]:
        """Task with its per-expert ``assignments``."""
        async with self.get_session() as session:
            task = await self._get_task_row(session, task_id)
            assignments = await self.fetch_all(
                session,
                select(
                    expert_tasks,
                    users.c.name.label("expert_name"),
                    users.c.email.label("expert_email"),
                )
                .select_from(expert_tasks.join(users, users.c.id == expert_tasks.c.expert_id))
                .where(expert_tasks.c.task_id == task_id)
                .order_by(expert_tasks.c.assigned_at),
            )

        if caller.role == UserRole.EXPERT:
            own = [row for row in assignments if row["expert_id"] == caller.user_id]
            if not own:
                raise NotFound("Task not found")
            task["assignment_status"] = own[0]["status"]
        elif not self._can_manage(caller, task):
            raise NotFound("Task not found")

        task["assignments"] = assignments
        return task

    async def update_task(
        self, caller: AuthTokenPayload, task_id: str, request: TaskUpdateRequest
    ) -> Dict[str, Any]:
        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        for field in ("priority", "status"):
            if field in changes:
                changes[field] = changes[field].value
        if changes.get("deadline") is not None:
            changes["deadline"] = changes["deadline"].replace(tzinfo=None)
        if "title" in changes:
            changes["title"] = self.validate_string_not_empty(changes["title"], "title")

        async with self.get_session() as session:
            task = await self._get_task_row(session, task_id)
            if not self._can_manage(caller, task):
                raise Forbidden("You cannot modify this task")
            if changes:
                changes["updated_at"] = utc_now()
                await session.execute(update(tasks).where(tasks.c.id == task_id).values(**changes))
                await self.activity.record(
                    session,
                    user_id=caller.user_id,
                    org_id=caller.org_id,
                    action=ActivityAction.UPDATE_TASK,
                    entity_type="Task",
                    entity_id=task_id,
                    details={k: str(v) for k, v in changes.items() if k != "updated_at"},
                )
            task = await self._get_task_row(session, task_id)
        return task

    async def assign_experts(
        self, caller: AuthTokenPayload, task_id: str, expert_ids: List[str]
    ) -> int:
        """
        Add experts to an existing task. Already-assigned ids are skipped.

        Returns:
            Number of newly created assignment rows
        """
        if not expert_ids:
            raise ValidationFailed("expert_ids must not be empty", fields=["expert_ids"])
        async with self.get_session() as session:
            task = await self._get_task_row(session, task_id)
            if not self._can_manage(caller, task):
                raise Forbidden("You cannot assign this task")
            valid_ids = await self._validate_experts(session, caller, expert_ids)
            assigned = await self._insert_assignments(session, task, valid_ids)
            if assigned:
                await self.activity.record(
                    session,
                    user_id=caller.user_id,
                    org_id=caller.org_id,
                    action=ActivityAction.ASSIGN_TASK,
                    entity_type="Task",
                    entity_id=task_id,
                    details={"expertIds": assigned},
                )
        return len(assigned)

    # ========================================================================
    # EXPERT OPERATIONS
    # ========================================================================

    async def transition_assignment(
        self, caller: AuthTokenPayload, task_id: str, action: str
    ) -> Dict[str, Any]:
        """
        Drive the caller's own assignment row.

        Raises:
            NotFound: The caller has no assignment on this task
            InvalidTransition: The row is not in a state the action accepts
        """
        if action not in ASSIGNMENT_TRANSITIONS:
            raise ValidationFailed(f"Unknown task action '{action}'")
        require_capability(caller.role, Capability.WORK_ON_TASKS)
        expected, target, activity_action = ASSIGNMENT_TRANSITIONS[action]

        async with self.get_session() as session:
            now = utc_now()
            extra = {"completed_at": now} if target == AssignmentStatus.COMPLETED.value else {}
            swapped = await self.update_if_status(
                session,
                expert_tasks,
                None,
                expected,
                target,
                extra_conditions=[
                    expert_tasks.c.task_id == task_id,
                    expert_tasks.c.expert_id == caller.user_id,
                ],
                **extra,
            )
            if not swapped:
                row = await self.fetch_one(
                    session,
                    select(expert_tasks.c.status).where(
                        expert_tasks.c.task_id == task_id,
                        expert_tasks.c.expert_id == caller.user_id,
                    ),
                )
                if not row:
                    raise NotFound("Task assignment not found")
                raise InvalidTransition("task assignment", row["status"], target)

            task = await self.fetch_one(
                session, select(tasks.c.title, tasks.c.created_by, tasks.c.org_id).where(
                    tasks.c.id == task_id
                )
            )
            await self.activity.record(
                session,
                user_id=caller.user_id,
                org_id=task["org_id"],
                action=activity_action,
                entity_type="Task",
                entity_id=task_id,
                details={"status": target},
            )
            await self.notifications.create(
                session,
                user_id=task["created_by"],
                type=NotificationType.TASK,
                title=f"Task {target.title()}",
                message=f"{caller.name or caller.email} {target.lower()} the task: {task['title']}",
                link=ADMIN_TASKS_LINK,
            )
        logger.info(f"Expert {caller.user_id} {action} task {task_id}")
        return {"taskId": task_id, "status": target}
