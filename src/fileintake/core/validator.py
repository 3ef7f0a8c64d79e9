"""Admission checks for incoming files.

Every check here is pure: it looks at the candidate, the attachments already held and
the intake configuration, and returns a verdict. Rejections are reported one per file so
that a single bad file never hides the outcome of its siblings.
"""

from collections.abc import Iterable, Sequence
from typing import Literal

from pydantic import BaseModel

from ..config.settings import IntakeConfig
from ..models import Attachment, IncomingFile
from ..utils.size_format import format_file_size

RejectionReason = Literal["quota-exceeded", "duplicate", "unsupported-type", "too-large", "empty-file"]


class Rejection(BaseModel):
    file_name: str
    reason: RejectionReason
    message: str


class ValidationReport(BaseModel):
    accepted: list[IncomingFile]
    rejected: list[Rejection]


def check_file(file: IncomingFile, config: IntakeConfig) -> Rejection | None:
    """Type and size checks for a single file, independent of what is already held."""
    if file.type.lower() not in config.allowed_types:
        return Rejection(
            file_name=file.name,
            reason="unsupported-type",
            message=f"Тип файла {file.type or 'неизвестен'} не поддерживается",
        )

    if file.size > config.max_file_size:
        return Rejection(
            file_name=file.name,
            reason="too-large",
            message=(
                f"Размер файла {format_file_size(file.size)} превышает лимит {format_file_size(config.max_file_size)}"
            ),
        )

    if file.size == 0:
        return Rejection(file_name=file.name, reason="empty-file", message="Файл пустой")

    return None


def validate_batch(
    candidates: Sequence[IncomingFile],
    existing: Iterable[Attachment],
    config: IntakeConfig,
) -> ValidationReport:
    """Splits a batch into accepted and rejected files, in submission order."""
    existing = list(existing)
    held = len(existing)
    signatures: set[tuple[str, int, str]] = {(a.name, a.original_size, a.original_type) for a in existing}

    accepted: list[IncomingFile] = []
    rejected: list[Rejection] = []

    for file in candidates:
        if held + len(accepted) >= config.max_files:
            rejected.append(
                Rejection(
                    file_name=file.name,
                    reason="quota-exceeded",
                    message=f"Можно прикрепить не более {config.max_files} файлов",
                )
            )
            continue

        if not config.allow_duplicates and file.signature in signatures:
            rejected.append(
                Rejection(file_name=file.name, reason="duplicate", message="Такой файл уже добавлен")
            )
            continue

        rejection = check_file(file, config)
        if rejection:
            rejected.append(rejection)
            continue

        accepted.append(file)
        signatures.add(file.signature)

    return ValidationReport(accepted=accepted, rejected=rejected)
