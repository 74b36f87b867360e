from uuid_extensions import uuid7str
from enum import Enum
from datetime import datetime, timezone
from typing import Any, Union

from pydantic import ConfigDict, FiniteFloat, StrictInt, field_validator, model_validator
from sqlmodel import Field, SQLModel

from lms_core.core.config import settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Generic message
class Message(SQLModel):
    """Model for messages.

    Attributes:
        message: Required message string.
    """

    message: str


class ComponentType(str, Enum):
    """Kinds of authored course components. A component never changes kind."""

    BANNER = "banner"
    VIDEO = "video"
    IMAGE = "image"
    READING = "reading"
    DOCUMENT = "document"
    AUDIO = "audio"
    QUIZ = "quiz"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class ContentBase(SQLModel):
    """Base for component content variants. Variants are closed records: unknown keys are rejected.

    Attributes:
        title: Title shown with the content.
    """

    model_config = ConfigDict(extra="forbid")

    title: str = ""


class BannerContent(ContentBase):
    """Content of a banner component.

    Attributes:
        img: URL of the banner image, empty until uploaded.
        subtitle: Optional subtitle.
        description: Optional description.
    """

    img: str = ""
    subtitle: str | None = ""
    description: str | None = ""


class VideoContent(ContentBase):
    """Content of a video component.

    Attributes:
        src: URL of the video file.
        poster: URL of the poster image.
        description: Optional description.
        duration: Duration in seconds, if known.
        autoplay: Start playing on load.
        controls: Show player controls.
    """

    src: str = ""
    poster: str = ""
    description: str | None = ""
    duration: float | None = Field(default=None, ge=0)
    autoplay: bool = False
    controls: bool = True


class ImageAlignment(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class ImageSize(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    FULL = "full"


class ImageContent(ContentBase):
    """Content of an image component.

    Attributes:
        img: URL of the image.
        alt: Alternative text.
        caption: Optional caption.
        description: Optional description.
        alignment: left/center/right.
        size: small/medium/large/full.
    """

    img: str = ""
    alt: str = ""
    caption: str | None = ""
    description: str | None = ""
    alignment: ImageAlignment = ImageAlignment.CENTER
    size: ImageSize = ImageSize.MEDIUM


class ReadingFormat(str, Enum):
    HTML = "html"
    MARKDOWN = "markdown"
    PLAIN = "plain"


class ReadingContent(ContentBase):
    """Content of a reading component.

    Attributes:
        text: Sanitized HTML, safe to render verbatim.
        format: html/markdown/plain.
    """

    text: str = ""
    format: ReadingFormat = ReadingFormat.HTML


class DocumentContent(ContentBase):
    """Content of a document component.

    Attributes:
        file_url: URL of the document.
        file_name: Original file name.
        file_type: Extension of the document.
        description: Optional description.
        downloadable: Always True.
    """

    file_url: str = ""
    file_name: str = ""
    file_type: str = ""
    description: str | None = ""
    downloadable: bool = True


class AudioContent(ContentBase):
    """Content of an audio component.

    Attributes:
        src: URL of the audio file.
        description: Optional description.
        duration: Duration in seconds, if known.
        autoplay: Start playing on load.
        controls: Show player controls.
        loop: Restart when finished.
    """

    src: str = ""
    description: str | None = ""
    duration: float | None = Field(default=None, ge=0)
    autoplay: bool = False
    controls: bool = True
    loop: bool = False


class QuizQuestion(SQLModel):
    """A single quiz question.

    Attributes:
        id: Unique identifier of the question within the quiz.
        type: multiple_choice/true_false/short_answer.
        question: Question text.
        options: Answer options, multiple_choice only.
        correct_answer: Option index, "true"/"false", or the expected short answer.
        explanation: Optional explanation shown after answering.
        points: Points awarded for a correct answer, at least 1.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=uuid7str)
    type: QuestionType
    question: str = ""
    options: list[str] | None = None
    correct_answer: StrictInt | str = ""
    explanation: str | None = None
    points: int = Field(default=1, ge=1)

    @model_validator(mode="before")
    @classmethod
    def _true_false_answer(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("type") != QuestionType.TRUE_FALSE:
            return data
        answer = data.get("correct_answer")
        if isinstance(answer, bool):
            return {**data, "correct_answer": "true" if answer else "false"}
        if isinstance(answer, str) and answer.strip().lower() in ("true", "false"):
            return {**data, "correct_answer": answer.strip().lower()}
        return data


class QuizContent(ContentBase):
    """Content of a quiz component.

    Attributes:
        questions: Ordered questions.
        passing_score: Percentage needed to pass, 0-100.
        time_limit: Time limit in minutes, None for no limit.
        attempts_allowed: Maximum attempts, -1 for unlimited.
        show_correct_answers: Reveal correct answers in attempt results.
    """

    questions: list[QuizQuestion] = Field(default_factory=list)
    passing_score: float = Field(default=70, ge=0, le=100)
    time_limit: int | None = Field(default=None, ge=1)
    attempts_allowed: int = Field(default=3, ge=-1)
    show_correct_answers: bool = True

    @field_validator("attempts_allowed")
    @classmethod
    def _attempts_not_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("attempts_allowed must be positive or -1 for unlimited")
        return value


ComponentContent = Union[
    BannerContent,
    VideoContent,
    ImageContent,
    ReadingContent,
    DocumentContent,
    AudioContent,
    QuizContent,
]

CONTENT_MODELS: dict[ComponentType, type[ContentBase]] = {
    ComponentType.BANNER: BannerContent,
    ComponentType.VIDEO: VideoContent,
    ComponentType.IMAGE: ImageContent,
    ComponentType.READING: ReadingContent,
    ComponentType.DOCUMENT: DocumentContent,
    ComponentType.AUDIO: AudioContent,
    ComponentType.QUIZ: QuizContent,
}


class ComponentBase(SQLModel):
    """Base model for components.

    Attributes:
        title: Title of the component.
        order: Position of the component in its module.
        is_mandatory: Whether learners must complete it.
    """

    title: str = Field(default="", max_length=255)
    order: int = Field(default=0, ge=0)
    is_mandatory: bool = False


class ComponentCreate(ComponentBase):
    """Model for creating a component. Content starts from the kind's defaults.

    Attributes:
        type: Kind of the component, fixed for its whole life.
    """

    type: ComponentType


class ComponentUpdate(SQLModel):
    """Model for editing a component. The kind cannot be changed.

    Attributes:
        title: Optional, new title.
        order: Optional, new position.
        is_mandatory: Optional, new mandatory flag.
        content: Optional, shallow patch applied to the current content.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=255)
    order: int | None = Field(default=None, ge=0)
    is_mandatory: bool | None = None
    content: dict[str, Any] | None = None


class Component(ComponentBase):
    """An authored unit of course content.

    Attributes:
        id: Unique identifier for the component.
        module_id: Module the component belongs to.
        type: Kind of the component.
        content: Variant record matching `type`.
        meta: Free-form metadata, e.g. detected file size or duration.
    """

    id: str = Field(default_factory=uuid7str)
    module_id: str
    type: ComponentType
    content: ComponentContent
    meta: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _content_for_type(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        content = data.get("content")
        try:
            content_model = CONTENT_MODELS[ComponentType(data.get("type"))]
        except ValueError:
            return data
        if isinstance(content, dict):
            data = {**data, "content": content_model.model_validate(content)}
        return data

    @model_validator(mode="after")
    def _content_matches_type(self) -> "Component":
        expected = CONTENT_MODELS[self.type]
        if type(self.content) is not expected:
            raise ValueError(
                f"{self.type.value} component cannot hold {type(self.content).__name__}"
            )
        return self


class ComponentEditResult(SQLModel):
    """Outcome of an edit.

    Attributes:
        component: The updated component.
        notice: Non-blocking message for the author, e.g. when text was sanitized.
    """

    component: Component
    notice: str | None = None


class ComponentsPublic(SQLModel):
    """Public representation for a list of Components.

    Attributes:
        data: list of Component objects
        count: total number of components
    """

    data: list[Component]
    count: int


class Completeness(SQLModel):
    """Result of a publish readiness check.

    Attributes:
        is_complete: True when the component can be published.
        reasons: Why it cannot, empty when complete.
    """

    is_complete: bool
    reasons: list[str] = Field(default_factory=list)


class FileCandidate(SQLModel):
    """A file offered for upload, described before any bytes are stored.

    Attributes:
        original_name: Name of the file on the client.
        file_size: Size in bytes.
        mime_type: Declared MIME type.
    """

    original_name: str = Field(min_length=1, max_length=255)
    file_size: int = Field(ge=0)
    mime_type: str = "application/octet-stream"


class UploadResult(SQLModel):
    """What the file storage reports once an upload has completed.

    Attributes:
        url: Public URL of the stored file.
        stored_name: Name under which the file was stored.
        path: Storage path of the file.
        meta: Detected metadata, e.g. duration.
    """

    url: str
    stored_name: str
    path: str
    meta: dict[str, Any] = Field(default_factory=dict)


class FileValidationResult(SQLModel):
    """Outcome of checking a file set against a policy.

    Attributes:
        is_valid: True when there are no violations.
        errors: Every violation, in order.
    """

    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class QuizAnswer(SQLModel):
    """A learner's answer to one question.

    Attributes:
        question_id: Question being answered.
        answer: Option index, true/false, or free text. None when skipped.
    """

    question_id: str
    answer: bool | int | str | None = None


class QuizAttempt(SQLModel):
    """One submitted quiz attempt.

    Attributes:
        answers: Answers in the order given; a later answer to the same question wins.
        attempt_number: 1-based number of this attempt.
        elapsed_seconds: Time spent on the attempt, if tracked.
    """

    answers: list[QuizAnswer] = Field(default_factory=list)
    attempt_number: int = Field(default=1, ge=1)
    elapsed_seconds: int | None = Field(default=None, ge=0)


class QuestionResult(SQLModel):
    """Scoring detail of one question.

    Attributes:
        question_id: Scored question.
        is_correct: Whether the answer matched.
        points_awarded: Points given, 0 or the question's points.
        points_possible: The question's points.
        answer: The answer that was scored.
        correct_answer: Expected answer, only when the quiz reveals answers.
        explanation: Explanation, only when the quiz reveals answers.
    """

    question_id: str
    is_correct: bool
    points_awarded: int
    points_possible: int
    answer: bool | int | str | None = None
    correct_answer: int | str | None = None
    explanation: str | None = None


class AttemptResult(SQLModel):
    """Scored quiz attempt.

    Attributes:
        total_score: Sum of awarded points.
        max_score: Sum of all question points.
        percentage: total_score / max_score * 100.
        passed: percentage reached the passing score.
        timed_out: The attempt ran past the time limit; it is still scored.
        attempt_number: Number of the scored attempt.
        per_question: Results in question order.
    """

    total_score: int
    max_score: int
    percentage: float
    passed: bool
    timed_out: bool = False
    attempt_number: int = 1
    per_question: list[QuestionResult] = Field(default_factory=list)


class ActivityTypeChoices(str, Enum):
    ASSIGNMENT = "assignment"
    PROJECT = "project"
    ESSAY = "essay"
    PRESENTATION = "presentation"


class SubmissionStatusChoices(str, Enum):
    """Submission states. Drafts live only on the client; only submitted and graded are stored."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    GRADED = "graded"


class ActivityBase(SQLModel):
    """Base model for activities.

    Attributes:
        title: Title of the activity.
        description: What the students have to do.
        instructions: Optional detailed instructions.
        type: assignment/project/essay/presentation.
        max_score: Highest possible score, positive.
        due_date: Deadline for first submissions.
        course_id: Course the activity belongs to.
        module_id: Optional module inside the course.
        allowed_file_types: Accepted file extensions, lower-cased, without dot.
        max_file_size: Maximum size of one file in bytes.
        max_files: Maximum number of files per submission.
    """

    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    instructions: str | None = None
    type: ActivityTypeChoices = ActivityTypeChoices.ASSIGNMENT
    max_score: float = Field(default=100, gt=0)
    due_date: datetime
    course_id: str
    module_id: str | None = None
    allowed_file_types: list[str] = Field(
        default_factory=lambda: list(settings.ACTIVITY_ALLOWED_FILE_TYPES)
    )
    max_file_size: int = Field(default_factory=lambda: settings.ACTIVITY_MAX_FILE_SIZE, gt=0)
    max_files: int = Field(default_factory=lambda: settings.ACTIVITY_MAX_FILES, ge=1)

    @field_validator("allowed_file_types")
    @classmethod
    def _normalize_file_types(cls, value: list[str]) -> list[str]:
        normalized = [ext.strip().lower().lstrip(".") for ext in value]
        return list(dict.fromkeys(ext for ext in normalized if ext))

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ActivityCreate(ActivityBase):
    """Model for creating an activity."""

    pass


class ActivityUpdate(SQLModel):
    """Model for updating an activity. All fields optional.

    Attributes:
        title: Optional, title of the activity.
        description: Optional, description.
        instructions: Optional, instructions.
        type: Optional, activity type.
        max_score: Optional, highest possible score.
        due_date: Optional, new deadline.
        module_id: Optional, module inside the course.
        allowed_file_types: Optional, accepted extensions.
        max_file_size: Optional, maximum file size in bytes.
        max_files: Optional, maximum number of files.
        is_active: Optional, whether submissions are accepted.
    """

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    instructions: str | None = None
    type: ActivityTypeChoices | None = None
    max_score: float | None = Field(default=None, gt=0)
    due_date: datetime | None = None
    module_id: str | None = None
    allowed_file_types: list[str] | None = None
    max_file_size: int | None = Field(default=None, gt=0)
    max_files: int | None = Field(default=None, ge=1)
    is_active: bool | None = None

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None


class Activity(ActivityBase):
    """An assignment posted by a teacher.

    Attributes:
        id: Unique identifier for the activity.
        created_by: Teacher who created it; the only one allowed to change it.
        created_at: Creation time.
        updated_at: Last change time.
        is_active: False once removed; inactive activities take no submissions.
    """

    id: str = Field(default_factory=uuid7str)
    created_by: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    is_active: bool = True


class ActivitiesPublic(SQLModel):
    """Public representation for a list of Activities.

    Attributes:
        data: list of Activity objects
        count: total number of activities
    """

    data: list[Activity]
    count: int


class ActivityFile(SQLModel):
    """A stored file attached to one submission.

    Attributes:
        id: Unique identifier for the file.
        original_name: Name of the file on the client.
        file_name: Stored file name.
        file_path: Storage path.
        file_size: Size in bytes.
        file_type: Extension of the file.
        mime_type: MIME type.
        uploaded_at: Upload completion time.
    """

    id: str = Field(default_factory=uuid7str)
    original_name: str
    file_name: str
    file_path: str
    file_size: int = Field(ge=0)
    file_type: str = ""
    mime_type: str = "application/octet-stream"
    uploaded_at: datetime = Field(default_factory=utcnow)


class SubmissionCreate(SQLModel):
    """Model for submitting work to an activity.

    Attributes:
        files: Files to upload with the submission.
        student_notes: Optional notes for the teacher.
    """

    files: list[FileCandidate] = Field(default_factory=list)
    student_notes: str | None = None


class ActivitySubmission(SQLModel):
    """One student's work for one activity. At most one per (activity, student).

    Attributes:
        id: Unique identifier for the submission.
        activity_id: Activity being answered.
        student_id: Student who submitted.
        submitted_at: Time of the latest submission.
        status: submitted or graded.
        files: Files of the latest submission.
        student_notes: Optional notes for the teacher.
        score: Score, set only once graded.
        max_score: Copied from the activity at submission time.
        feedback: Teacher feedback, set only once graded.
        graded_at: Time of the latest grading.
        graded_by: Teacher who graded last.
        version: Incremented by every change, used for optimistic concurrency.
    """

    id: str = Field(default_factory=uuid7str)
    activity_id: str
    student_id: str
    submitted_at: datetime
    status: SubmissionStatusChoices = SubmissionStatusChoices.SUBMITTED
    files: list[ActivityFile] = Field(default_factory=list)
    student_notes: str | None = None
    score: FiniteFloat | None = None
    max_score: float = Field(gt=0)
    feedback: str | None = None
    graded_at: datetime | None = None
    graded_by: str | None = None
    version: int = Field(default=1, ge=1)


class SubmissionsPublic(SQLModel):
    """Public representation for a list of Submissions.

    Attributes:
        data: list of ActivitySubmission objects
        count: total number of submissions
    """

    data: list[ActivitySubmission]
    count: int


class GradeRequest(SQLModel):
    """Model for grading a submission.

    Attributes:
        score: Score to give, within [0, max_score].
        feedback: Optional feedback for the student.
    """

    score: FiniteFloat
    feedback: str | None = None


class ActivityStats(SQLModel):
    """Aggregate view over the submissions of one activity.

    Attributes:
        total_students: Roster size of the course.
        submitted: Submissions received, graded ones included.
        graded: Submissions graded.
        pending: Students without a submission.
        on_time: Submissions received by the due date.
        late: Submissions received after the due date.
        average_score: Mean score of graded submissions, None when none is graded.
    """

    total_students: int
    submitted: int
    graded: int
    pending: int
    on_time: int
    late: int
    average_score: float | None = None
