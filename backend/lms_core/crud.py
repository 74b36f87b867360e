"""
Persistence and file storage collaborators.

The core never stores anything itself; these in-memory implementations back
the HTTP surface and the tests. Durable backends implement the same
functions/protocol.
"""
import logging
from dataclasses import dataclass, field
from typing import Protocol

from uuid_extensions import uuid7str

from lms_core.core.errors import StaleSubmission
from lms_core.core.files import file_extension
from lms_core.models import (
    Activity,
    ActivitySubmission,
    Component,
    FileCandidate,
    UploadResult,
)

logger = logging.getLogger(__name__)


class FileStorage(Protocol):
    async def upload(self, candidate: FileCandidate, kind: str) -> UploadResult:
        """Store a file and report where it went. Only completed uploads return."""
        ...


class MemoryFileStorage:
    """File storage keeping only file descriptions, keyed by storage path."""

    def __init__(self, base_url: str = "memory://uploads") -> None:
        self.base_url = base_url.rstrip("/")
        self.files: dict[str, FileCandidate] = {}

    async def upload(self, candidate: FileCandidate, kind: str) -> UploadResult:
        extension = file_extension(candidate.original_name)
        stored_name = uuid7str() + (f".{extension}" if extension else "")
        path = f"{kind}/{stored_name}"
        self.files[path] = candidate
        logger.debug("Stored %s as %s", candidate.original_name, path)
        return UploadResult(
            url=f"{self.base_url}/{path}",
            stored_name=stored_name,
            path=path,
            meta={"file_size": candidate.file_size},
        )


@dataclass
class MemoryStore:
    """In-memory records. Rosters map a course ID to its enrolled student IDs."""

    components: dict[str, Component] = field(default_factory=dict)
    activities: dict[str, Activity] = field(default_factory=dict)
    submissions: dict[str, ActivitySubmission] = field(default_factory=dict)
    rosters: dict[str, set[str]] = field(default_factory=dict)


async def save_component(*, store: MemoryStore, component: Component) -> Component:
    """Create or replace a component.

    :param store: the record store.
    :param component: the component to persist.
    :returns: the stored component.
    """
    store.components[component.id] = component
    return component


async def get_component(*, store: MemoryStore, component_id: str) -> Component | None:
    return store.components.get(component_id)


async def list_components(*, store: MemoryStore, module_id: str) -> list[Component]:
    """Components of a module in display order."""
    components = [c for c in store.components.values() if c.module_id == module_id]
    return sorted(components, key=lambda c: (c.order, c.id))


async def delete_component(*, store: MemoryStore, component_id: str) -> bool:
    return store.components.pop(component_id, None) is not None


async def save_activity(*, store: MemoryStore, activity: Activity) -> Activity:
    store.activities[activity.id] = activity
    return activity


async def get_activity(*, store: MemoryStore, activity_id: str) -> Activity | None:
    return store.activities.get(activity_id)


async def list_activities(
    *, store: MemoryStore, course_id: str | None = None, include_inactive: bool = False
) -> list[Activity]:
    """Activities ordered by due date, optionally for a single course."""
    activities = [
        a
        for a in store.activities.values()
        if (course_id is None or a.course_id == course_id)
        and (include_inactive or a.is_active)
    ]
    return sorted(activities, key=lambda a: (a.due_date, a.id))


async def get_submission(
    *, store: MemoryStore, submission_id: str
) -> ActivitySubmission | None:
    return store.submissions.get(submission_id)


async def get_submission_for_student(
    *, store: MemoryStore, activity_id: str, student_id: str
) -> ActivitySubmission | None:
    for submission in store.submissions.values():
        if submission.activity_id == activity_id and submission.student_id == student_id:
            return submission
    return None


async def list_submissions(
    *, store: MemoryStore, activity_id: str
) -> list[ActivitySubmission]:
    submissions = [s for s in store.submissions.values() if s.activity_id == activity_id]
    return sorted(submissions, key=lambda s: (s.submitted_at, s.id))


async def save_submission(
    *,
    store: MemoryStore,
    submission: ActivitySubmission,
    expected_version: int | None,
) -> ActivitySubmission:
    """Persist a submission with an optimistic version check.

    :param store: the record store.
    :param submission: the new state of the submission.
    :param expected_version: version the change was based on, None for a new submission.
    :raises StaleSubmission: the stored record changed in the meantime, or a
        second submission for the same student and activity would be created.
    :returns: the stored submission.
    """
    current = store.submissions.get(submission.id)

    if current is None:
        if expected_version is not None:
            raise StaleSubmission("Submission no longer exists")
        duplicate = await get_submission_for_student(
            store=store,
            activity_id=submission.activity_id,
            student_id=submission.student_id,
        )
        if duplicate is not None:
            raise StaleSubmission("A submission for this activity already exists")
    elif current.version != expected_version:
        logger.info(
            "Stale write to submission %s: expected version %s, found %s",
            submission.id,
            expected_version,
            current.version,
        )
        raise StaleSubmission("Submission was changed by someone else, reload and retry")

    store.submissions[submission.id] = submission
    return submission


async def enroll_student(*, store: MemoryStore, course_id: str, student_id: str) -> None:
    store.rosters.setdefault(course_id, set()).add(student_id)


async def roster_size(*, store: MemoryStore, course_id: str) -> int:
    return len(store.rosters.get(course_id, set()))
