"""REST API router."""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from taskmaster import __version__
from taskmaster.api.deps import get_current_user, get_db_session, verify_api_key
from taskmaster.api.schemas import (
    CreateTaskRequest,
    HealthResponse,
    PagedTaskResponse,
    TagResponse,
    TaskResponse,
    UpdateTaskRequest,
    decode_etag,
    parse_sort_by,
    parse_sort_direction,
)
from taskmaster.auth.context import CurrentUser
from taskmaster.config import settings
from taskmaster.engine import (
    ConcurrencyConflict,
    NotFoundError,
    TaskMasterEngine,
    UnauthorizedError,
    ValidationFailure,
)
from taskmaster.models import (
    CreateTaskModel,
    TaskPriority,
    TaskQuery,
    TaskStatus,
    UpdateTaskModel,
)


router = APIRouter(prefix="/v1", dependencies=[Depends(verify_api_key)])


def _set_etag(response: Response, etag: Optional[str]) -> None:
    # Strong validator, quoted
    if etag:
        response.headers["ETag"] = f'"{etag}"'


def _precondition(if_match: Optional[str], body_etag: Optional[str]) -> Optional[bytes]:
    """Version token from If-Match (preferred) or the request body."""
    if if_match and if_match.strip():
        # An undecodable header can never match, so it fails the guard
        return decode_etag(if_match) or b""
    return decode_etag(body_etag)


def _precondition_required(detail: str) -> HTTPException:
    return HTTPException(status_code=428, detail=detail)


# ============================================================================
# Health
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


# ============================================================================
# Tasks
# ============================================================================


@router.get("/tasks", response_model=PagedTaskResponse)
async def search_tasks(
    page_number: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    statuses: Optional[list[str]] = Query(None),
    priorities: Optional[list[str]] = Query(None),
    due_on_or_after: Optional[date] = Query(None),
    due_on_or_before: Optional[date] = Query(None),
    search: Optional[str] = Query(None),
    tags: Optional[list[str]] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_direction: Optional[str] = Query(None),
    include_tags: bool = Query(True),
    session: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Search, filter, sort and page the caller's tasks."""
    if due_on_or_after and due_on_or_before and due_on_or_before < due_on_or_after:
        raise HTTPException(
            status_code=422,
            detail="due_on_or_before must be on or after due_on_or_after.",
        )
    if tags and any(not t.strip() for t in tags):
        raise HTTPException(status_code=422, detail="Tag names in filter cannot be blank.")

    try:
        criteria = TaskQuery(
            page_number=page_number,
            page_size=page_size,
            statuses=[TaskStatus.parse(s) for s in statuses] if statuses else None,
            priorities=[TaskPriority.parse(p) for p in priorities] if priorities else None,
            due_on_or_after=due_on_or_after,
            due_on_or_before=due_on_or_before,
            search=search.strip() if search and search.strip() else None,
            tags=tags,
            sort_by=parse_sort_by(sort_by),
            sort_direction=parse_sort_direction(sort_direction),
            include_tags=include_tags,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    engine = TaskMasterEngine(session)
    try:
        page = await engine.search_tasks(user, criteria)
    except UnauthorizedError as e:
        raise HTTPException(status_code=401, detail=e.message)

    return PagedTaskResponse(
        items=[TaskResponse.from_model(t) for t in page.items],
        total_count=page.total_count,
        page_number=page.page_number,
        page_size=page.page_size,
    )


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: UUID,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Get a task by ID."""
    engine = TaskMasterEngine(session)

    try:
        task = await engine.get_task(user, task_id)
    except UnauthorizedError as e:
        raise HTTPException(status_code=401, detail=e.message)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    dto = TaskResponse.from_model(task)
    _set_etag(response, dto.etag)
    return dto


@router.post("/tasks", response_model=TaskResponse, status_code=201)
async def create_task(
    request: CreateTaskRequest,
    response: Response,
    session: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Create a new task."""
    engine = TaskMasterEngine(session)

    model = CreateTaskModel(
        title=request.title,
        description=request.description,
        priority=request.priority,
        due_date=request.due_date,
        tags=request.tags,
    )

    try:
        task = await engine.create_task(user, model)
    except UnauthorizedError as e:
        raise HTTPException(status_code=401, detail=e.message)
    except ValidationFailure as e:
        raise HTTPException(status_code=422, detail=e.message)

    dto = TaskResponse.from_model(task)
    _set_etag(response, dto.etag)
    response.headers["Location"] = f"{router.prefix}/tasks/{dto.id}"
    return dto


@router.put("/tasks/{task_id}", response_model=TaskResponse)
@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: UUID,
    request: UpdateTaskRequest,
    response: Response,
    if_match: Optional[str] = Header(None, alias="If-Match"),
    session: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Partially update a task.

    Requires the task's current ETag via If-Match (preferred) or the body
    ``etag`` field; a stale ETag yields 412 Precondition Failed.
    """
    version = _precondition(if_match, request.etag)
    if version is None and settings.require_if_match:
        raise _precondition_required(
            "Provide an If-Match header (preferred) or an etag in the request body. "
            "Use the ETag from the latest GET response."
        )

    engine = TaskMasterEngine(session)

    changes = UpdateTaskModel(
        title=request.title,
        description=request.description,
        priority=request.priority,
        due_date=request.due_date,
        status=request.status,
        tags=request.tags,
        if_match_version=version,
    )

    try:
        task = await engine.update_task(user, task_id, changes)
    except UnauthorizedError as e:
        raise HTTPException(status_code=401, detail=e.message)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ConcurrencyConflict as e:
        raise HTTPException(status_code=412, detail=e.message)
    except ValidationFailure as e:
        raise HTTPException(status_code=422, detail=e.message)

    dto = TaskResponse.from_model(task)
    _set_etag(response, dto.etag)
    return dto


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(
    task_id: UUID,
    if_match: Optional[str] = Header(None, alias="If-Match"),
    session: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Delete a task; requires If-Match with the current ETag."""
    version = _precondition(if_match, None)
    if version is None and settings.require_if_match:
        raise _precondition_required(
            "DELETE requires an If-Match header containing the current entity ETag."
        )

    engine = TaskMasterEngine(session)

    try:
        await engine.delete_task(user, task_id, if_match_version=version)
    except UnauthorizedError as e:
        raise HTTPException(status_code=401, detail=e.message)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ConcurrencyConflict as e:
        raise HTTPException(status_code=412, detail=e.message)

    return Response(status_code=204)


# ============================================================================
# Tags
# ============================================================================


@router.get("/tags", response_model=list[TagResponse])
async def search_tags(
    search: Optional[str] = Query(None),
    limit: int = Query(10),
    session: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Typeahead search over the caller's tags, ordered by name."""
    engine = TaskMasterEngine(session)

    try:
        tags = await engine.search_tags(user, search=search, limit=limit)
    except UnauthorizedError as e:
        raise HTTPException(status_code=401, detail=e.message)

    return [TagResponse.from_model(t) for t in tags]


@router.delete("/tags/{tag_id}", status_code=204)
async def delete_tag(
    tag_id: UUID,
    session: AsyncSession = Depends(get_db_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Delete a tag. Tasks carrying it keep everything except the link."""
    engine = TaskMasterEngine(session)

    try:
        await engine.delete_tag(user, tag_id)
    except UnauthorizedError as e:
        raise HTTPException(status_code=401, detail=e.message)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    return Response(status_code=204)
