"""Staff task board endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from butler.container import Services
from butler.tasks.schemas import CompleteTaskRequest, Task, TaskList, TaskStatus

from .deps import get_services, require_staff_id, service_errors

router = APIRouter(tags=["tasks"])


@router.get("/api/tasks", response_model=TaskList)
async def list_tasks(
    status: TaskStatus | None = None,
    department: str | None = None,
    limit: int = 50,
    offset: int = 0,
    services: Services = Depends(get_services),
) -> TaskList:
    return await services.tasks.list(
        status=status, department=department, limit=limit, offset=offset
    )


@router.get("/api/tasks/{task_id}", response_model=Task)
async def get_task(task_id: str, services: Services = Depends(get_services)) -> Task:
    with service_errors():
        return await services.tasks.get(task_id)


@router.post("/api/tasks/{task_id}/claim", response_model=Task)
async def claim_task(
    task_id: str,
    staff_id: str = Depends(require_staff_id),
    services: Services = Depends(get_services),
) -> Task:
    with service_errors():
        return await services.tasks.claim(task_id, staff_id)


@router.post("/api/tasks/{task_id}/complete", response_model=Task)
async def complete_task(
    task_id: str,
    payload: CompleteTaskRequest | None = None,
    staff_id: str = Depends(require_staff_id),
    services: Services = Depends(get_services),
) -> Task:
    notes = payload.notes if payload else None
    with service_errors():
        return await services.tasks.complete(task_id, staff_id=staff_id, notes=notes)
