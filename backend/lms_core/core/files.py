import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from lms_core.core.config import settings
from lms_core.core.errors import InvalidContentShape, InvalidFiles
from lms_core.models import Activity, ComponentType, FileValidationResult

logger = logging.getLogger(__name__)

_SIZE_UNITS = ["Bytes", "KB", "MB", "GB"]


class SizedFile(Protocol):
    original_name: str
    file_size: int


@dataclass(frozen=True)
class FilePolicy:
    """Constraints for one upload context.

    Attributes:
        max_files: maximum number of files in the set.
        max_file_size: maximum size of a single file in bytes, None for no limit.
        allowed_extensions: lower-cased extensions without the dot, None for any.
    """

    max_files: int
    max_file_size: int | None = None
    allowed_extensions: frozenset[str] | None = None

    @classmethod
    def build(
        cls,
        max_files: int,
        max_file_size: int | None = None,
        allowed_extensions: Iterable[str] | None = None,
    ) -> "FilePolicy":
        extensions = (
            None
            if allowed_extensions is None
            else frozenset(ext.lower().lstrip(".") for ext in allowed_extensions)
        )
        return cls(
            max_files=max_files,
            max_file_size=max_file_size,
            allowed_extensions=extensions,
        )


def file_extension(name: str) -> str:
    """Lower-cased suffix after the last dot, "" when the name has none."""
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def format_file_size(size: int) -> str:
    """Human readable size, e.g. 10485760 -> "10 MB"."""
    if size <= 0:
        return "0 Bytes"
    index = 0
    while index < len(_SIZE_UNITS) - 1 and size >= 1024 ** (index + 1):
        index += 1
    value = round(size / 1024**index, 2)
    return f"{value:g} {_SIZE_UNITS[index]}"


def validate_files(files: Sequence[SizedFile], policy: FilePolicy) -> FileValidationResult:
    """Check a candidate file set against a policy.

    Every violation is reported: one error for the file count, then for each
    file one error per exceeded size and one per disallowed extension.
    Pure function, no side effects.

    :param files: candidate files in submission order.
    :param policy: the constraints of the upload context.
    :returns: FileValidationResult with is_valid and the ordered error list.
    """
    errors: list[str] = []

    if len(files) > policy.max_files:
        errors.append(f"Maximum {policy.max_files} files allowed")

    for index, file in enumerate(files, start=1):
        label = f"File {index} ({file.original_name})"

        if policy.max_file_size is not None and file.file_size > policy.max_file_size:
            errors.append(
                f"{label}: maximum size {format_file_size(policy.max_file_size)}"
            )

        if policy.allowed_extensions is not None:
            extension = file_extension(file.original_name)
            if extension not in policy.allowed_extensions:
                errors.append(f"{label}: type {extension or '(none)'} not allowed")

    return FileValidationResult(is_valid=not errors, errors=errors)


def ensure_valid_files(files: Sequence[SizedFile], policy: FilePolicy) -> None:
    """Raise InvalidFiles carrying every violation when the set is rejected."""
    result = validate_files(files, policy)
    if not result.is_valid:
        logger.info("File set rejected: %s", result.errors)
        raise InvalidFiles(result.errors)


def policy_for_activity(activity: Activity) -> FilePolicy:
    return FilePolicy.build(
        max_files=activity.max_files,
        max_file_size=activity.max_file_size,
        allowed_extensions=activity.allowed_file_types,
    )


def policy_for_component(component_type: ComponentType) -> FilePolicy:
    """Upload policy of a file-bearing component kind.

    :raises InvalidContentShape: for kinds that hold no file.
    """
    if component_type == ComponentType.VIDEO:
        return FilePolicy.build(1, settings.VIDEO_MAX_FILE_SIZE, settings.VIDEO_EXTENSIONS)
    if component_type == ComponentType.AUDIO:
        return FilePolicy.build(1, settings.AUDIO_MAX_FILE_SIZE, settings.AUDIO_EXTENSIONS)
    if component_type == ComponentType.DOCUMENT:
        return FilePolicy.build(
            1, settings.DOCUMENT_MAX_FILE_SIZE, settings.DOCUMENT_EXTENSIONS
        )
    if component_type in (ComponentType.IMAGE, ComponentType.BANNER):
        return FilePolicy.build(1, settings.IMAGE_MAX_FILE_SIZE, settings.IMAGE_EXTENSIONS)
    raise InvalidContentShape(f"Component type {component_type.value} holds no file")
