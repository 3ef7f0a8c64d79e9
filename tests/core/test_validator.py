from src.fileintake.config.settings import IntakeConfig
from src.fileintake.core.validator import check_file, validate_batch
from src.fileintake.models import Attachment, AttachmentMetadata, MemoryFile


def _held(name: str, size: int = 10, type: str = "application/pdf") -> Attachment:
    return Attachment(
        id=name,
        name=name,
        size=size,
        type=type,
        original_type=type,
        original_size=size,
        status="ready",
        metadata=AttachmentMetadata(last_modified=0),
    )


def _pdf(name: str, size: int = 10) -> MemoryFile:
    return MemoryFile.from_bytes(name, b"x" * size, type="application/pdf")


def test_quota_admits_only_remaining_slots():
    """Test that with 3 of 5 slots used, 2 of 4 new files are admitted in order."""
    # Arrange
    config = IntakeConfig(max_files=5)
    existing = [_held("a.pdf"), _held("b.pdf"), _held("c.pdf")]
    candidates = [_pdf("d.pdf"), _pdf("e.pdf"), _pdf("f.pdf"), _pdf("g.pdf")]

    # Act
    report = validate_batch(candidates, existing, config)

    # Assert
    assert [f.name for f in report.accepted] == ["d.pdf", "e.pdf"]
    assert [(r.file_name, r.reason) for r in report.rejected] == [
        ("f.pdf", "quota-exceeded"),
        ("g.pdf", "quota-exceeded"),
    ]


def test_rejected_files_do_not_consume_quota():
    """Test that a file rejected for its type leaves its slot to the next file."""
    config = IntakeConfig(max_files=1)
    candidates = [MemoryFile.from_bytes("run.exe", b"MZ", type="application/x-msdownload"), _pdf("ok.pdf")]

    report = validate_batch(candidates, [], config)

    assert [f.name for f in report.accepted] == ["ok.pdf"]
    assert report.rejected[0].reason == "unsupported-type"


def test_duplicate_of_held_attachment():
    """Test that a file matching a held attachment's name, size and type is rejected."""
    config = IntakeConfig()
    existing = [_held("report.pdf", size=10)]

    report = validate_batch([_pdf("report.pdf", size=10)], existing, config)

    assert report.accepted == []
    assert report.rejected[0].reason == "duplicate"
    assert report.rejected[0].message == "Такой файл уже добавлен"


def test_duplicate_compares_original_size_not_compressed_size():
    """Test that a held compressed file still matches its original size."""
    config = IntakeConfig()
    held = _held("photo.png", size=10, type="image/png").model_copy(
        update={"size": 4, "type": "image/webp", "compression_applied": True}
    )
    candidate = MemoryFile.from_bytes("photo.png", b"x" * 10, type="image/png")

    report = validate_batch([candidate], [held], config)

    assert report.rejected[0].reason == "duplicate"


def test_duplicate_within_batch():
    """Test that the second copy of a file in the same batch is rejected."""
    report = validate_batch([_pdf("a.pdf"), _pdf("a.pdf")], [], IntakeConfig())

    assert len(report.accepted) == 1
    assert report.rejected[0].reason == "duplicate"


def test_duplicates_allowed():
    """Test that duplicates pass when allow_duplicates is set."""
    config = IntakeConfig(allow_duplicates=True)

    report = validate_batch([_pdf("a.pdf")], [_held("a.pdf")], config)

    assert len(report.accepted) == 1
    assert report.rejected == []


def test_check_file_unsupported_type():
    file = MemoryFile.from_bytes("notes.txt", b"hello", type="text/plain")

    rejection = check_file(file, IntakeConfig())

    assert rejection is not None
    assert rejection.reason == "unsupported-type"
    assert "text/plain" in rejection.message


def test_check_file_too_large():
    """Test the size limit, with a human-readable limit in the message."""
    config = IntakeConfig(max_file_size=1024)
    file = _pdf("big.pdf", size=2048)

    rejection = check_file(file, config)

    assert rejection is not None
    assert rejection.reason == "too-large"
    assert "2 KB" in rejection.message
    assert "1 KB" in rejection.message


def test_check_file_empty():
    file = MemoryFile.from_bytes("empty.pdf", b"", type="application/pdf")

    rejection = check_file(file, IntakeConfig())

    assert rejection is not None
    assert rejection.reason == "empty-file"


def test_check_file_type_is_case_insensitive():
    file = MemoryFile.from_bytes("a.pdf", b"x", type="Application/PDF")

    assert check_file(file, IntakeConfig()) is None
