"""
Project and task management tools.

Tools:
    createProject           new project, status "active"
    createTask              new task under an existing project
    createProjectWithTasks  project plus its tasks in one call
    getProjectTasks         every task of one project
    getTasksDueInPeriod     tasks whose due date falls in [startDate, endDate]
    updateTaskStatus        todo | in_progress | done
    updateProjectStatus     active | completed | archived

Resources:
    projects://all                  every project
    projects://{projectId}/tasks    tasks of one project

Every task references an existing project: createTask on an unknown project
fails with NotFound and stores nothing.

Due dates are stored as extended ISO text, so they order lexicographically.
A date-only bound ("2025-03-05") is compared against the date part of each
due date, so a task due 2025-03-05T09:00:00 falls inside [..., 2025-03-05].
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from pydantic import StrictStr

from core.envelopes import ContentBlock, TextBlock
from core.errors import ErrorKind, NotFoundError
from core.records import Project, ProjectStatus, Task, TaskStatus
from core.schema import IsoDate, NonEmptyStr, ToolParams
from core.store import Store
from life_mcp.schemas import URI_PROJECT_TASKS, URI_PROJECTS
from tools.base import ResourceDescriptor, ToolDescriptor, ToolResult

logger = logging.getLogger(__name__)


class CreateProjectParams(ToolParams):
    name: NonEmptyStr
    description: StrictStr


class CreateTaskParams(ToolParams):
    projectId: NonEmptyStr
    title: NonEmptyStr
    description: StrictStr | None = None
    dueDate: IsoDate | None = None


class TaskSpec(ToolParams):
    """One task inside createProjectWithTasks."""

    title: NonEmptyStr
    description: StrictStr | None = None
    dueDate: IsoDate | None = None


class CreateProjectWithTasksParams(ToolParams):
    name: NonEmptyStr
    description: StrictStr
    tasks: list[TaskSpec]


class ProjectIdParams(ToolParams):
    projectId: NonEmptyStr


class DuePeriodParams(ToolParams):
    startDate: IsoDate
    endDate: IsoDate


class UpdateTaskStatusParams(ToolParams):
    taskId: NonEmptyStr
    status: TaskStatus


class UpdateProjectStatusParams(ToolParams):
    projectId: NonEmptyStr
    status: ProjectStatus


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------


def format_project(project: Project) -> str:
    return (
        f"Project ID: {project.id}\n"
        f"Project: {project.name}\n"
        f"Description: {project.description}\n"
        f"Status: {project.status}\n"
        f"Created: {project.created_at}\n"
        f"Updated: {project.updated_at}"
    )


def format_task(task: Task, project_name: str | None = None) -> str:
    lines = [f"Task ID: {task.id}", f"Title: {task.title}"]
    if project_name is not None:
        lines.append(f"Project: {project_name}")
    if task.description:
        lines.append(f"Description: {task.description}")
    lines.append(f"Status: {task.status}")
    if task.due_date:
        lines.append(f"Due: {task.due_date}")
    return "\n".join(lines)


def _listing(items: list[str]) -> str:
    return "\n---\n".join(items)


_DATE_LEN = len("YYYY-MM-DD")


def _at_precision(due_date: str, bound: str) -> str:
    """Truncate a date or datetime to the date part when the bound is date-only."""
    return due_date[:_DATE_LEN] if len(bound) == _DATE_LEN else due_date


def _due_between(due_date: str | None, start: str, end: str) -> bool:
    if due_date is None:
        return False
    return _at_precision(due_date, start) >= start and _at_precision(due_date, end) <= end


class ProjectTools:
    """
    Handlers for the project-management server.

    Args:
        projects: Store Adapter holding Project records
        tasks: Store Adapter holding Task records
    """

    def __init__(self, projects: Store[Project], tasks: Store[Task]) -> None:
        self._projects = projects
        self._tasks = tasks

    async def _require_project(self, project_id: str) -> Project:
        project = await self._projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id!r} not found", details=(project_id,))
        return project

    async def _insert_task(
        self, project_id: str, title: str, description: str | None, due_date: str | None
    ) -> Task:
        return await self._tasks.insert(
            Task(
                id="",
                project_id=project_id,
                title=title,
                description=description,
                due_date=due_date,
            )
        )

    async def create_project(self, params: CreateProjectParams) -> ToolResult:
        project = await self._projects.insert(
            Project(id="", name=params.name, description=params.description)
        )
        logger.info("Created project %s (%s)", project.id, project.name)
        return ToolResult.ok(f"Project {project.name} created successfully (ID: {project.id})")

    async def create_task(self, params: CreateTaskParams) -> ToolResult:
        project = await self._require_project(params.projectId)
        task = await self._insert_task(
            project.id, params.title, params.description, params.dueDate
        )
        logger.info("Created task %s in project %s", task.id, project.id)
        return ToolResult.ok(
            f"Task {task.title} created in project {project.name} (ID: {task.id})"
        )

    async def create_project_with_tasks(self, params: CreateProjectWithTasksParams) -> ToolResult:
        project = await self._projects.insert(
            Project(id="", name=params.name, description=params.description)
        )
        created = [
            await self._insert_task(project.id, item.title, item.description, item.dueDate)
            for item in params.tasks
        ]
        logger.info("Created project %s with %d tasks", project.id, len(created))
        summary = "\n".join(f"- {t.title} (ID: {t.id})" for t in created)
        text = f"Project {project.name} created successfully (ID: {project.id}) with {len(created)} tasks"
        return ToolResult.ok(f"{text}\n{summary}" if created else text)

    async def get_project_tasks(self, params: ProjectIdParams) -> ToolResult:
        project = await self._require_project(params.projectId)
        tasks = await self._tasks.query({"projectId": project.id})
        if not tasks:
            return ToolResult.ok(f"No tasks found for project {project.name}")
        return ToolResult.ok(
            f"Tasks for project {project.name}:\n\n{_listing([format_task(t) for t in tasks])}"
        )

    async def get_tasks_due_in_period(self, params: DuePeriodParams) -> ToolResult:
        if _at_precision(params.startDate, params.endDate) > params.endDate:
            return ToolResult.fail(
                ErrorKind.INVALID_PARAMS,
                f"startDate {params.startDate} is after endDate {params.endDate}",
                "startDate",
                "endDate",
            )
        due = [
            t
            for t in await self._tasks.query({})
            if _due_between(t.due_date, params.startDate, params.endDate)
        ]
        if not due:
            return ToolResult.ok(
                f"No tasks due between {params.startDate} and {params.endDate}"
            )
        names = {p.id: p.name for p in await self._projects.query({})}
        due.sort(key=lambda t: t.due_date or "")
        listing = _listing([format_task(t, names.get(t.project_id)) for t in due])
        return ToolResult.ok(
            f"Tasks due between {params.startDate} and {params.endDate}:\n\n{listing}"
        )

    async def update_task_status(self, params: UpdateTaskStatusParams) -> ToolResult:
        task = await self._tasks.update(params.taskId, {"status": params.status})
        if task is None:
            raise NotFoundError(f"Task {params.taskId!r} not found", details=(params.taskId,))
        return ToolResult.ok(f"Task {task.title} status updated to {task.status}")

    async def update_project_status(self, params: UpdateProjectStatusParams) -> ToolResult:
        project = await self._projects.update(params.projectId, {"status": params.status})
        if project is None:
            raise NotFoundError(
                f"Project {params.projectId!r} not found", details=(params.projectId,)
            )
        return ToolResult.ok(f"Project {project.name} status updated to {project.status}")

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def read_projects(self, uri: str, params: Mapping[str, str]) -> list[ContentBlock]:
        projects = await self._projects.query({})
        if not projects:
            return [TextBlock("No projects found")]
        return [TextBlock(_listing([format_project(p) for p in projects]))]

    async def read_project_tasks(self, uri: str, params: Mapping[str, str]) -> list[ContentBlock]:
        project = await self._require_project(params["projectId"])
        tasks = await self._tasks.query({"projectId": project.id})
        if not tasks:
            return [TextBlock(f"No tasks found for project {project.name}")]
        return [TextBlock(_listing([format_task(t) for t in tasks]))]

    def descriptors(self) -> list[ToolDescriptor | ResourceDescriptor]:
        return [
            ToolDescriptor(
                name="createProject",
                description="Create a new project",
                parameter_schema=CreateProjectParams,
                handler=self.create_project,
            ),
            ToolDescriptor(
                name="createTask",
                description="Create a task in an existing project",
                parameter_schema=CreateTaskParams,
                handler=self.create_task,
            ),
            ToolDescriptor(
                name="createProjectWithTasks",
                description="Create a project together with its initial tasks",
                parameter_schema=CreateProjectWithTasksParams,
                handler=self.create_project_with_tasks,
            ),
            ToolDescriptor(
                name="getProjectTasks",
                description="List every task of a project",
                parameter_schema=ProjectIdParams,
                handler=self.get_project_tasks,
            ),
            ToolDescriptor(
                name="getTasksDueInPeriod",
                description="List tasks due between startDate and endDate (inclusive)",
                parameter_schema=DuePeriodParams,
                handler=self.get_tasks_due_in_period,
            ),
            ToolDescriptor(
                name="updateTaskStatus",
                description="Set a task's status: todo, in_progress or done",
                parameter_schema=UpdateTaskStatusParams,
                handler=self.update_task_status,
            ),
            ToolDescriptor(
                name="updateProjectStatus",
                description="Set a project's status: active, completed or archived",
                parameter_schema=UpdateProjectStatusParams,
                handler=self.update_project_status,
            ),
            ResourceDescriptor(
                uri_pattern=URI_PROJECTS,
                description="All projects",
                resolver=self.read_projects,
            ),
            ResourceDescriptor(
                uri_pattern=URI_PROJECT_TASKS,
                description="Tasks of one project",
                resolver=self.read_project_tasks,
            ),
        ]
