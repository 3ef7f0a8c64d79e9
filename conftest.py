import io
import sys
from pathlib import Path

import pytest


def pytest_configure(config):
    sys.path.insert(0, str(Path(__file__).parent / "src"))


@pytest.fixture
def intake_config():
    """Config with no group cooldown so that tests stay fast."""
    from src.fileintake.config.settings import IntakeConfig

    return IntakeConfig(group_delay_seconds=0)


@pytest.fixture
def make_image():
    """Builds real encoded images with Pillow."""
    from PIL import Image

    def _make(width: int = 64, height: int = 48, fmt: str = "PNG", mode: str = "RGB", noise: bool = False) -> bytes:
        if noise:
            # Random pixels defeat the encoder, giving a large file to compress
            img = Image.frombytes(mode, (width, height), _noise_bytes(width * height * len(mode)))
        else:
            img = Image.new(mode, (width, height), (200, 30, 30) if mode == "RGB" else (200, 30, 30, 128))
        buffer = io.BytesIO()
        img.save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


@pytest.fixture
def make_pdf():
    """Builds a real PDF with pypdf, carrying document metadata."""
    from pypdf import PdfWriter

    def _make(pages: int = 1, title: str = "Secret report", author: str = "Jane Doe") -> bytes:
        writer = PdfWriter()
        for _ in range(pages):
            writer.add_blank_page(width=200, height=200)
        writer.add_metadata({"/Title": title, "/Author": author, "/Producer": "test-suite"})
        buffer = io.BytesIO()
        writer.write(buffer)
        return buffer.getvalue()

    return _make


def _noise_bytes(length: int) -> bytes:
    import random

    rng = random.Random(42)
    return rng.randbytes(length)
