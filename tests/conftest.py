"""
Shared fixtures for report engine tests.
"""

import io

import pytest
from PIL import Image

from src.schemas.models import AuditRecord


@pytest.fixture
def png_bytes():
    """Factory producing small, distinct RGB images."""

    def _make(width: int = 40, height: int = 30, color=(200, 30, 30), fmt: str = "PNG") -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", (width, height), color).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


@pytest.fixture
def questions():
    return [
        "Is the work area free of unnecessary items?",
        "Are tools stored in their marked places?",
        "Is the floor clean and dry?",
    ]


@pytest.fixture
def audits():
    """Two audits over two areas, every question answered."""
    return [
        AuditRecord.model_validate({
            "id": "a1",
            "audit_data": {"nombreAuditor": "Ana Ruiz", "area": "Warehouse", "fecha": "2024-03-01"},
            "answers": {
                0: {"answer": "Yes", "observation": "Tidy"},
                1: {"answer": "No", "observation": "Wrench left on bench",
                    "photo": "https://photos.example.com/a1-q2.png"},
                2: {"answer": "N/A"},
            },
        }),
        AuditRecord.model_validate({
            "id": "a2",
            "metadata": {"auditor": "Luis Vega", "area": "Assembly", "date": "2024-03-02"},
            "answers": {
                0: {"answer": "No", "observation": "Boxes in aisle"},
                1: {"answer": "Yes"},
                2: {"answer": "Yes", "observation": "Mopped"},
            },
        }),
    ]


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, content: bytes = b""):
        self.status_code = status_code
        self.content = content

    @property
    def ok(self) -> bool:
        return self.status_code < 400


@pytest.fixture
def fake_response():
    return FakeResponse
