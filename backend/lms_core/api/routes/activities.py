"""
Activities, submissions and grading. Only the creator of an activity may
change it, see its submissions or grade them.
"""
import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from lms_core import crud
from lms_core.api.deps import CurrentUser, NowDep, StorageDep, StoreDep
from lms_core.core.activity import (
    compute_stats,
    create_activity,
    deactivate_activity,
    ensure_can_submit,
    ensure_owner,
    grade_submission,
    submit_activity,
    update_activity,
)
from lms_core.core.files import file_extension
from lms_core.models import (
    ActivitiesPublic,
    Activity,
    ActivityCreate,
    ActivityFile,
    ActivityStats,
    ActivitySubmission,
    ActivityUpdate,
    GradeRequest,
    Message,
    SubmissionCreate,
    SubmissionsPublic,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["activities"])


async def _get_activity_or_404(store: StoreDep, activity_id: str) -> Activity:
    activity = await crud.get_activity(store=store, activity_id=activity_id)
    if not activity:
        raise HTTPException(status_code=404, detail="Activity not found.")
    return activity


@router.get("/activities", response_model=ActivitiesPublic)
async def read_activities_route(
    store: StoreDep,
    current_user: CurrentUser,
    course_id: str | None = None,
    skip: int = 0,
    limit: int = 10,
) -> Any:
    """
    Retrieve active activities, optionally for one course, ordered by due date.
    """
    activities = await crud.list_activities(store=store, course_id=course_id)
    return ActivitiesPublic(data=activities[skip : skip + limit], count=len(activities))


@router.post("/activities", response_model=Activity)
async def create_activity_route(
    store: StoreDep, current_user: CurrentUser, now: NowDep, activity_in: ActivityCreate
) -> Any:
    activity = create_activity(activity_in, created_by=current_user, now=now)
    logger.info("User %s created activity %s", current_user, activity.id)
    return await crud.save_activity(store=store, activity=activity)


@router.get("/activities/{activity_id}", response_model=Activity)
async def read_activity_route(
    store: StoreDep, current_user: CurrentUser, activity_id: str
) -> Any:
    return await _get_activity_or_404(store, activity_id)


@router.patch("/activities/{activity_id}", response_model=Activity)
async def update_activity_route(
    store: StoreDep,
    current_user: CurrentUser,
    now: NowDep,
    activity_id: str,
    activity_in: ActivityUpdate,
) -> Any:
    activity = await _get_activity_or_404(store, activity_id)
    activity = update_activity(activity, activity_in, editor_id=current_user, now=now)
    return await crud.save_activity(store=store, activity=activity)


@router.delete("/activities/{activity_id}", response_model=Message)
async def delete_activity_route(
    store: StoreDep, current_user: CurrentUser, now: NowDep, activity_id: str
) -> Any:
    """
    Deactivate an activity. Existing submissions are kept.
    """
    activity = await _get_activity_or_404(store, activity_id)
    activity = deactivate_activity(activity, editor_id=current_user, now=now)
    await crud.save_activity(store=store, activity=activity)
    return Message(message="Activity deleted successfully")


@router.post("/activities/{activity_id}/submissions", response_model=ActivitySubmission)
async def submit_activity_route(
    store: StoreDep,
    storage: StorageDep,
    current_user: CurrentUser,
    now: NowDep,
    activity_id: str,
    submission_in: SubmissionCreate,
) -> Any:
    """
    Submit work for the current user, or replace a submission that has not
    been graded yet. Files are checked before any of them is uploaded.
    """
    activity = await _get_activity_or_404(store, activity_id)
    existing = await crud.get_submission_for_student(
        store=store, activity_id=activity_id, student_id=current_user
    )
    ensure_can_submit(activity, now, existing, submission_in.files)

    files = []
    for candidate in submission_in.files:
        upload = await storage.upload(candidate, f"activities/{activity_id}")
        files.append(
            ActivityFile(
                original_name=candidate.original_name,
                file_name=upload.stored_name,
                file_path=upload.path,
                file_size=candidate.file_size,
                file_type=file_extension(candidate.original_name),
                mime_type=candidate.mime_type,
                uploaded_at=now,
            )
        )

    submission = submit_activity(
        activity,
        student_id=current_user,
        files=files,
        notes=submission_in.student_notes,
        now=now,
        existing=existing,
    )
    return await crud.save_submission(
        store=store,
        submission=submission,
        expected_version=existing.version if existing else None,
    )


@router.get("/activities/{activity_id}/submissions", response_model=SubmissionsPublic)
async def read_submissions_route(
    store: StoreDep,
    current_user: CurrentUser,
    activity_id: str,
    skip: int = 0,
    limit: int = 50,
) -> Any:
    activity = await _get_activity_or_404(store, activity_id)
    ensure_owner(activity, current_user)
    submissions = await crud.list_submissions(store=store, activity_id=activity_id)
    return SubmissionsPublic(data=submissions[skip : skip + limit], count=len(submissions))


@router.get("/activities/{activity_id}/stats", response_model=ActivityStats)
async def read_activity_stats_route(
    store: StoreDep, current_user: CurrentUser, activity_id: str
) -> Any:
    activity = await _get_activity_or_404(store, activity_id)
    ensure_owner(activity, current_user)
    submissions = await crud.list_submissions(store=store, activity_id=activity_id)
    total = await crud.roster_size(store=store, course_id=activity.course_id)
    return compute_stats(activity, submissions, total)


@router.post("/submissions/{submission_id}/grade", response_model=ActivitySubmission)
async def grade_submission_route(
    store: StoreDep,
    current_user: CurrentUser,
    now: NowDep,
    submission_id: str,
    grade_in: GradeRequest,
) -> Any:
    """
    Grade or re-grade a submission.
    """
    submission = await crud.get_submission(store=store, submission_id=submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found.")

    activity = await _get_activity_or_404(store, submission.activity_id)
    ensure_owner(activity, current_user)

    graded = grade_submission(
        submission,
        score=grade_in.score,
        feedback=grade_in.feedback,
        grader_id=current_user,
        now=now,
    )
    logger.info("User %s graded submission %s", current_user, submission_id)
    return await crud.save_submission(
        store=store, submission=graded, expected_version=submission.version
    )
