"""
Activity lifecycle: creation, submission and grading.

Submissions go submitted -> graded. Drafts stay on the client and are never
stored. All functions here are pure: they take the current records and return
new ones, persistence is up to the caller.
"""
import logging
from collections.abc import Sequence
from datetime import datetime

from pydantic import ValidationError

from lms_core.core.errors import (
    InvalidActivity,
    InvalidScore,
    NotActivityOwner,
    NotSubmitted,
    PastDeadline,
    validation_messages,
)
from lms_core.core.files import SizedFile, ensure_valid_files, policy_for_activity
from lms_core.models import (
    Activity,
    ActivityCreate,
    ActivityFile,
    ActivityStats,
    ActivitySubmission,
    ActivityUpdate,
    SubmissionStatusChoices,
    as_utc,
)

logger = logging.getLogger(__name__)

RECEIVED_STATUSES = (SubmissionStatusChoices.SUBMITTED, SubmissionStatusChoices.GRADED)


def create_activity(activity_in: ActivityCreate, created_by: str, now: datetime) -> Activity:
    """Create an activity for a teacher.

    :param activity_in: activity data.
    :param created_by: ID of the teacher creating it.
    :param now: current time.
    :raises InvalidActivity: if the due date is not in the future.
    :returns: the new Activity.
    """
    now = as_utc(now)
    if activity_in.due_date <= now:
        raise InvalidActivity("Due date must be in the future")

    return Activity(
        **activity_in.model_dump(),
        created_by=created_by,
        created_at=now,
        updated_at=now,
    )


def ensure_owner(activity: Activity, user_id: str) -> None:
    if activity.created_by != user_id:
        raise NotActivityOwner("Only the creator of the activity can manage it")


def update_activity(
    activity: Activity, activity_in: ActivityUpdate, editor_id: str, now: datetime
) -> Activity:
    """Apply changes made by the activity's creator.

    Only fields present in the update are applied, so an explicit null clears
    an optional field. A changed due date must still be in the future.
    """
    ensure_owner(activity, editor_id)
    now = as_utc(now)
    changes = activity_in.model_dump(exclude_unset=True)
    if changes.get("due_date") is not None and changes["due_date"] <= now:
        raise InvalidActivity("Due date must be in the future")

    data = {**activity.model_dump(), **changes, "updated_at": now}
    try:
        return Activity.model_validate(data)
    except ValidationError as exc:
        messages = validation_messages(exc, default="activity")
        raise InvalidActivity("Invalid activity: " + "; ".join(messages), messages) from exc


def deactivate_activity(activity: Activity, editor_id: str, now: datetime) -> Activity:
    """Soft-remove an activity; it stops accepting submissions."""
    ensure_owner(activity, editor_id)
    now = as_utc(now)
    return activity.model_copy(update={"is_active": False, "updated_at": now})


def is_late(submission: ActivitySubmission, activity: Activity) -> bool:
    return submission.submitted_at > activity.due_date


def ensure_can_submit(
    activity: Activity,
    now: datetime,
    existing: ActivitySubmission | None = None,
    files: Sequence[SizedFile] = (),
) -> None:
    """Check that a submission would be accepted, before anything is uploaded.

    :raises InvalidActivity: the activity is inactive.
    :raises PastDeadline: first submission after the due date, or the existing one is graded.
    :raises InvalidFiles: the files violate the activity's constraints.
    """
    now = as_utc(now)
    if not activity.is_active:
        raise InvalidActivity("Activity is not accepting submissions")

    if existing is not None and existing.status == SubmissionStatusChoices.GRADED:
        raise PastDeadline("Submission has already been graded")

    if existing is None and now > activity.due_date:
        raise PastDeadline("The due date for this activity has passed")

    ensure_valid_files(files, policy_for_activity(activity))


def submit_activity(
    activity: Activity,
    student_id: str,
    files: Sequence[ActivityFile],
    notes: str | None,
    now: datetime,
    existing: ActivitySubmission | None = None,
) -> ActivitySubmission:
    """Submit or resubmit a student's work.

    A first submission creates the record. A resubmission before grading
    replaces files, notes and submitted_at in place; there is never more than
    one submission per student and activity.

    :param activity: the activity being answered.
    :param student_id: ID of the student.
    :param files: stored files of this submission.
    :param notes: optional notes for the teacher.
    :param now: current time, becomes submitted_at.
    :param existing: the student's current submission for this activity, if any.
    :raises PastDeadline: see ensure_can_submit.
    :raises InvalidFiles: see ensure_can_submit.
    :returns: the new or replaced submission.
    """
    if existing is not None and (
        existing.activity_id != activity.id or existing.student_id != student_id
    ):
        raise ValueError("Existing submission belongs to another activity or student")

    now = as_utc(now)
    ensure_can_submit(activity, now, existing, files)

    if existing is None:
        submission = ActivitySubmission(
            activity_id=activity.id,
            student_id=student_id,
            submitted_at=now,
            status=SubmissionStatusChoices.SUBMITTED,
            files=list(files),
            student_notes=notes,
            max_score=activity.max_score,
        )
    else:
        submission = existing.model_copy(
            update={
                "files": list(files),
                "student_notes": notes,
                "submitted_at": now,
                "version": existing.version + 1,
            }
        )

    if is_late(submission, activity):
        logger.info(
            "Late submission %s for activity %s", submission.id, activity.id
        )
    return submission


def grade_submission(
    submission: ActivitySubmission,
    score: float,
    feedback: str | None,
    grader_id: str,
    now: datetime,
) -> ActivitySubmission:
    """Grade a submission, or re-grade it in place.

    :raises InvalidScore: score outside [0, max_score], NaN included.
    :raises NotSubmitted: the submission is not submitted or graded.
    """
    now = as_utc(now)
    if not 0 <= score <= submission.max_score:
        raise InvalidScore(f"Score must be between 0 and {submission.max_score:g}")

    if submission.status not in RECEIVED_STATUSES:
        raise NotSubmitted("Only submitted work can be graded")

    return submission.model_copy(
        update={
            "status": SubmissionStatusChoices.GRADED,
            "score": score,
            "feedback": feedback,
            "graded_by": grader_id,
            "graded_at": now,
            "version": submission.version + 1,
        }
    )


def compute_stats(
    activity: Activity, submissions: Sequence[ActivitySubmission], roster_size: int
) -> ActivityStats:
    """Aggregate a snapshot of an activity's submissions.

    :param activity: the activity.
    :param submissions: its submissions; records of other activities are ignored.
    :param roster_size: number of students in the course.
    :returns: ActivityStats.
    """
    received = [
        submission
        for submission in submissions
        if submission.activity_id == activity.id and submission.status in RECEIVED_STATUSES
    ]
    graded = [s for s in received if s.status == SubmissionStatusChoices.GRADED]
    on_time = sum(1 for s in received if not is_late(s, activity))
    scores = [s.score for s in graded if s.score is not None]

    return ActivityStats(
        total_students=roster_size,
        submitted=len(received),
        graded=len(graded),
        pending=max(roster_size - len(received), 0),
        on_time=on_time,
        late=len(received) - on_time,
        average_score=sum(scores) / len(scores) if scores else None,
    )


def time_until_due(activity: Activity, now: datetime) -> tuple[str, bool]:
    """Remaining time until the due date as text, and whether it has passed."""
    remaining = activity.due_date - as_utc(now)
    seconds = int(remaining.total_seconds())
    if seconds <= 0:
        return "Overdue", True

    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60
    if days > 0:
        return f"{days} day{'s' if days != 1 else ''}", False
    if hours > 0:
        return f"{hours} hour{'s' if hours != 1 else ''}", False
    return f"{minutes} minute{'s' if minutes != 1 else ''}", False
