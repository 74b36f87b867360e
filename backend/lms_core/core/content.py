import logging
from typing import Any, NamedTuple

from pydantic import ValidationError

from lms_core.core.config import settings
from lms_core.core.errors import InvalidContentShape, UnsafeContent, validation_messages
from lms_core.core.files import ensure_valid_files, file_extension, policy_for_component
from lms_core.core.sanitizer import (
    MarkupParser,
    extract_plain_text,
    parse_markup,
    sanitize_rich_text,
)
from lms_core.models import (
    CONTENT_MODELS,
    AudioContent,
    BannerContent,
    Completeness,
    Component,
    ComponentCreate,
    ComponentEditResult,
    ComponentType,
    ComponentUpdate,
    ContentBase,
    DocumentContent,
    FileCandidate,
    ImageContent,
    QuestionType,
    QuizContent,
    QuizQuestion,
    ReadingContent,
    UploadResult,
    VideoContent,
)

logger = logging.getLogger(__name__)

# Fields holding a stored file reference, per kind. They are only ever set by attach_file.
FILE_FIELDS: dict[ComponentType, str] = {
    ComponentType.BANNER: "img",
    ComponentType.IMAGE: "img",
    ComponentType.VIDEO: "src",
    ComponentType.AUDIO: "src",
    ComponentType.DOCUMENT: "file_url",
}

SANITIZED_NOTICE = "Content was automatically cleaned of unsafe markup."
UNSAFE_NOTICE = (
    "Potentially dangerous content was detected and removed; only the plain text was kept."
)


class ContentUpdate(NamedTuple):
    """Result of a content operation.

    Attributes:
        content: the new content record.
        meta: metadata to merge into the component, e.g. detected file size.
        notice: non-blocking message for the author.
    """

    content: ContentBase
    meta: dict[str, Any]
    notice: str | None


def content_model(component_type: ComponentType | str) -> type[ContentBase]:
    """Variant model of a component kind.

    :raises TypeError: for an unknown kind, which is a programming error.
    """
    try:
        return CONTENT_MODELS[ComponentType(component_type)]
    except (KeyError, ValueError):
        raise TypeError(f"Unknown component type: {component_type!r}") from None


def _validate_content(model: type[ContentBase], data: dict[str, Any]) -> ContentBase:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        messages = validation_messages(exc)
        raise InvalidContentShape(
            f"Invalid {model.__name__}: " + "; ".join(messages), messages
        ) from exc


def create_default_content(
    component_type: ComponentType | str, title: str = ""
) -> ContentBase:
    """Minimal content for a freshly created component of the given kind.

    :param component_type: kind of the component.
    :param title: title copied into the content.
    :returns: content record with the kind's defaults.
    """
    model = content_model(component_type)
    if model is QuizContent:
        return QuizContent(
            title=title,
            passing_score=settings.QUIZ_PASSING_SCORE,
            attempts_allowed=settings.QUIZ_ATTEMPTS_ALLOWED,
        )
    return model(title=title)


def new_question(question_type: QuestionType | str) -> QuizQuestion:
    """A new question with the defaults an author starts from."""
    question_type = QuestionType(question_type)
    if question_type == QuestionType.MULTIPLE_CHOICE:
        return QuizQuestion(
            type=question_type,
            options=[f"Option {i}" for i in range(1, 5)],
            correct_answer=0,
        )
    if question_type == QuestionType.TRUE_FALSE:
        return QuizQuestion(type=question_type, correct_answer="true")
    return QuizQuestion(type=question_type, correct_answer="")


def update_content(
    component_type: ComponentType | str,
    content: ContentBase,
    patch: dict[str, Any],
    strict: bool = False,
    parser: MarkupParser = parse_markup,
) -> ContentUpdate:
    """Shallow-merge a patch into a component's content.

    Only fields of the kind's record are accepted. File references can be
    cleared here but a new file has to go through `attach_file`. Reading text
    is run through the sanitization pipeline; unsafe input is replaced by its
    plain text, or rejected with UnsafeContent when `strict` is set.

    :param component_type: kind of the component owning the content.
    :param content: current content, must be of the kind's record type.
    :param patch: fields to replace.
    :param strict: raise UnsafeContent instead of falling back to plain text.
    :param parser: markup parser used by the sanitizer.
    :raises TypeError: unknown component type.
    :raises InvalidContentShape: unknown keys, invalid values or a mismatched content record.
    :raises UnsafeContent: unsafe reading text with `strict` set.
    """
    model = content_model(component_type)
    component_type = ComponentType(component_type)
    if type(content) is not model:
        raise InvalidContentShape(
            f"{model.__name__} expected, got {type(content).__name__}"
        )

    unknown = sorted(set(patch) - set(model.model_fields))
    if unknown:
        raise InvalidContentShape(
            f"Unknown fields for {component_type.value} content: {', '.join(unknown)}",
            [f"{key}: not a {component_type.value} field" for key in unknown],
        )

    file_field = FILE_FIELDS.get(component_type)
    if file_field in patch and patch[file_field] and patch[file_field] != getattr(
        content, file_field
    ):
        raise InvalidContentShape(
            f"{file_field} can only be set by uploading a file",
            [f"{file_field}: upload a file to change it"],
        )

    merged = {**content.model_dump(), **patch}
    notice = None

    if component_type == ComponentType.READING and "text" in patch:
        raw = patch["text"]
        if not isinstance(raw, str):
            raise InvalidContentShape("text must be a string", ["text: must be a string"])
        rich = sanitize_rich_text(raw, parser=parser)
        if rich.unsafe:
            if strict:
                logger.warning("Rejected unsafe reading text")
                raise UnsafeContent(UNSAFE_NOTICE, fallback=rich.html)
            notice = UNSAFE_NOTICE
        elif rich.altered:
            notice = SANITIZED_NOTICE
        merged["text"] = rich.html

    if component_type == ComponentType.DOCUMENT:
        merged["downloadable"] = True

    return ContentUpdate(_validate_content(model, merged), {}, notice)


def check_component_file(
    component_type: ComponentType | str, candidate: FileCandidate
) -> None:
    """Validate a file against the kind's upload policy, before it is stored.

    :raises InvalidContentShape: the kind holds no file.
    :raises InvalidFiles: the file violates the policy.
    """
    ensure_valid_files([candidate], policy_for_component(ComponentType(component_type)))


def attach_file(
    component_type: ComponentType | str,
    content: ContentBase,
    candidate: FileCandidate,
    upload: UploadResult,
) -> ContentUpdate:
    """Point a file-bearing component at a completed upload.

    :param component_type: kind of the component.
    :param content: current content.
    :param candidate: the file as described by the client, validated again here.
    :param upload: what the storage reported for the stored file.
    :returns: ContentUpdate with the new content and file metadata.
    """
    model = content_model(component_type)
    component_type = ComponentType(component_type)
    if type(content) is not model:
        raise InvalidContentShape(
            f"{model.__name__} expected, got {type(content).__name__}"
        )
    check_component_file(component_type, candidate)

    updates: dict[str, Any] = {FILE_FIELDS[component_type]: upload.url}
    if component_type == ComponentType.DOCUMENT:
        updates["file_name"] = candidate.original_name
        updates["file_type"] = file_extension(candidate.original_name)
    if component_type in (ComponentType.VIDEO, ComponentType.AUDIO):
        duration = upload.meta.get("duration")
        if duration is not None:
            updates["duration"] = duration

    meta = {
        "original_name": candidate.original_name,
        "file_size": candidate.file_size,
        "mime_type": candidate.mime_type,
        **upload.meta,
    }
    return ContentUpdate(_validate_content(model, {**content.model_dump(), **updates}), meta, None)


def question_problems(question: QuizQuestion, position: int = 1) -> list[str]:
    """Everything that keeps a question from being scorable."""
    label = f"Question {position}"
    problems = []
    if not question.question.strip():
        problems.append(f"{label}: question text is empty")

    if question.type == QuestionType.MULTIPLE_CHOICE:
        options = question.options or []
        if len(options) < 2:
            problems.append(f"{label}: at least 2 options are required")
        if len(options) > settings.QUIZ_MAX_OPTIONS:
            problems.append(f"{label}: at most {settings.QUIZ_MAX_OPTIONS} options are allowed")
        answer = question.correct_answer
        if isinstance(answer, bool) or not isinstance(answer, int) or not (
            0 <= answer < len(options)
        ):
            problems.append(f"{label}: correct answer must be one of the options")
    elif question.type == QuestionType.TRUE_FALSE:
        if question.correct_answer not in ("true", "false"):
            problems.append(f"{label}: correct answer must be 'true' or 'false'")
    elif question.type == QuestionType.SHORT_ANSWER:
        answer = question.correct_answer
        if not isinstance(answer, str) or not answer.strip():
            problems.append(f"{label}: correct answer must be a non-empty text")
    return problems


def quiz_total_points(content: QuizContent) -> int:
    return sum(question.points for question in content.questions)


def reading_stats(content: ReadingContent) -> dict[str, int]:
    """Word and character counts of a reading's text."""
    text = extract_plain_text(content.text)
    return {"words": len(text.split()), "characters": len(text)}


def is_complete(component_type: ComponentType | str, content: Any) -> Completeness:
    """Check whether content is ready to publish. Never raises.

    :returns: Completeness with the reasons when incomplete.
    """
    try:
        component_type = ComponentType(component_type)
    except ValueError:
        return Completeness(is_complete=False, reasons=[f"Unknown component type: {component_type!r}"])

    model = CONTENT_MODELS[component_type]
    if type(content) is not model:
        return Completeness(
            is_complete=False,
            reasons=[f"Content is not a {component_type.value} record"],
        )

    reasons = []
    if not content.title.strip():
        reasons.append("Title is required")

    if isinstance(content, (BannerContent, ImageContent)) and not content.img:
        reasons.append("An image is required")
    elif isinstance(content, (VideoContent, AudioContent)) and not content.src:
        reasons.append(f"A {component_type.value} file is required")
    elif isinstance(content, DocumentContent) and not content.file_url:
        reasons.append("A document file is required")
    elif isinstance(content, ReadingContent) and not extract_plain_text(content.text).strip():
        reasons.append("Reading text is empty")
    elif isinstance(content, QuizContent):
        if not content.questions:
            reasons.append("A quiz needs at least one question")
        for position, question in enumerate(content.questions, start=1):
            reasons.extend(question_problems(question, position))

    return Completeness(is_complete=not reasons, reasons=reasons)


def build_component(module_id: str, component_in: ComponentCreate) -> Component:
    """Create a component with the default content of its kind."""
    return Component(
        module_id=module_id,
        type=component_in.type,
        title=component_in.title,
        order=component_in.order,
        is_mandatory=component_in.is_mandatory,
        content=create_default_content(component_in.type, title=component_in.title),
    )


def apply_component_update(
    component: Component, component_in: ComponentUpdate, strict: bool = False
) -> ComponentEditResult:
    """Apply an editor update. The kind of the component never changes.

    Only fields present in the update are applied; an explicit null is
    validated like any other value.
    """
    changes = component_in.model_dump(exclude_unset=True, exclude={"content"})
    content = component.content
    notice = None

    if component_in.content is not None:
        result = update_content(
            component.type, component.content, component_in.content, strict=strict
        )
        content = result.content
        notice = result.notice

    try:
        updated = Component.model_validate(
            {**component.model_dump(exclude={"content"}), **changes, "content": content}
        )
    except ValidationError as exc:
        messages = validation_messages(exc, default="component")
        raise InvalidContentShape("Invalid component: " + "; ".join(messages), messages) from exc
    return ComponentEditResult(component=updated, notice=notice)


def apply_component_file(
    component: Component, candidate: FileCandidate, upload: UploadResult
) -> Component:
    result = attach_file(component.type, component.content, candidate, upload)
    return component.model_copy(
        update={"content": result.content, "meta": {**component.meta, **result.meta}}
    )
