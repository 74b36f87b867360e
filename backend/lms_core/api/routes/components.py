"""
Authoring of module components, their files and quiz attempts.
"""
import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from lms_core import crud
from lms_core.api.deps import CurrentUser, StorageDep, StoreDep
from lms_core.core.content import (
    apply_component_file,
    apply_component_update,
    build_component,
    check_component_file,
    is_complete,
)
from lms_core.core.errors import InvalidContentShape
from lms_core.core.quiz import evaluate_attempt
from lms_core.models import (
    AttemptResult,
    Completeness,
    Component,
    ComponentCreate,
    ComponentEditResult,
    ComponentsPublic,
    ComponentType,
    ComponentUpdate,
    FileCandidate,
    Message,
    QuizAttempt,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["components"])


async def _get_component_or_404(store: StoreDep, component_id: str) -> Component:
    component = await crud.get_component(store=store, component_id=component_id)
    if not component:
        raise HTTPException(status_code=404, detail="Component not found.")
    return component


@router.get("/modules/{module_id}/components", response_model=ComponentsPublic)
async def read_components_route(
    store: StoreDep,
    current_user: CurrentUser,
    module_id: str,
    skip: int = 0,
    limit: int = 100,
) -> Any:
    """
    Retrieve the components of a module in display order.
    """
    components = await crud.list_components(store=store, module_id=module_id)
    return ComponentsPublic(data=components[skip : skip + limit], count=len(components))


@router.post("/modules/{module_id}/components", response_model=Component)
async def create_component_route(
    store: StoreDep,
    current_user: CurrentUser,
    module_id: str,
    component_in: ComponentCreate,
) -> Any:
    """
    Create a component. Its content starts from the defaults of its kind.
    """
    component = build_component(module_id, component_in)
    logger.info(
        "User %s created %s component %s", current_user, component.type.value, component.id
    )
    return await crud.save_component(store=store, component=component)


@router.get("/components/{component_id}", response_model=Component)
async def read_component_route(
    store: StoreDep, current_user: CurrentUser, component_id: str
) -> Any:
    return await _get_component_or_404(store, component_id)


@router.patch("/components/{component_id}", response_model=ComponentEditResult)
async def update_component_route(
    store: StoreDep,
    current_user: CurrentUser,
    component_id: str,
    component_in: ComponentUpdate,
    strict: bool = False,
) -> Any:
    """
    Edit a component. Reading text is sanitized; the response carries a notice
    when it had to be changed. With `strict`, unsafe text is rejected instead.
    """
    component = await _get_component_or_404(store, component_id)
    result = apply_component_update(component, component_in, strict=strict)
    await crud.save_component(store=store, component=result.component)
    return result


@router.post("/components/{component_id}/file", response_model=Component)
async def upload_component_file_route(
    store: StoreDep,
    storage: StorageDep,
    current_user: CurrentUser,
    component_id: str,
    file_in: FileCandidate,
) -> Any:
    """
    Attach a file to a banner, image, video, audio or document component.
    The file is checked before anything is stored.
    """
    component = await _get_component_or_404(store, component_id)
    check_component_file(component.type, file_in)

    upload = await storage.upload(file_in, component.type.value)
    component = apply_component_file(component, file_in, upload)
    return await crud.save_component(store=store, component=component)


@router.get("/components/{component_id}/completeness", response_model=Completeness)
async def read_completeness_route(
    store: StoreDep, current_user: CurrentUser, component_id: str
) -> Any:
    component = await _get_component_or_404(store, component_id)
    return is_complete(component.type, component.content)


@router.delete("/components/{component_id}", response_model=Message)
async def delete_component_route(
    store: StoreDep, current_user: CurrentUser, component_id: str
) -> Any:
    await _get_component_or_404(store, component_id)
    await crud.delete_component(store=store, component_id=component_id)
    return Message(message="Component deleted successfully")


@router.post("/components/{component_id}/attempts", response_model=AttemptResult)
async def evaluate_attempt_route(
    store: StoreDep,
    current_user: CurrentUser,
    component_id: str,
    attempt_in: QuizAttempt,
) -> Any:
    """
    Score a quiz attempt. Nothing is stored; the caller tracks attempt numbers.
    """
    component = await _get_component_or_404(store, component_id)
    if component.type != ComponentType.QUIZ:
        raise InvalidContentShape(f"Component {component_id} is not a quiz")

    result = evaluate_attempt(component.content, attempt_in)
    logger.info(
        "User %s scored %s/%s on quiz %s (attempt %d)",
        current_user,
        result.total_score,
        result.max_score,
        component_id,
        result.attempt_number,
    )
    return result
