"""Pytest configuration and fixtures for DocForge tests with real MongoDB."""

import csv
import io
import os
import uuid
import zipfile
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Generator

import pytest
import pytest_asyncio
from beanie import init_beanie
from httpx import ASGITransport, AsyncClient
from openpyxl import Workbook
from pymongo import AsyncMongoClient, MongoClient
from pymongo.errors import PyMongoError

from docforge.config import reset_settings
from docforge.database import get_document_models
from docforge.models import ContentType, FieldType, Template, TemplateField
from docforge.services.document_storage import DocumentStorage


# MongoDB connection URL for tests (can be overridden with env var)
TEST_MONGODB_URL = os.environ.get("TEST_MONGODB_URL", "mongodb://localhost:27017")


# Create a test-specific app to avoid lifespan conflicts
def create_test_app():
    """Create a FastAPI app configured for testing (no database lifespan)."""
    from fastapi import FastAPI
    from docforge import __version__
    from docforge.main import app as main_app
    from docforge.main import install_error_handlers

    # Empty lifespan for testing - we manage the database ourselves
    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        yield

    test_app = FastAPI(
        title="DocForge Test",
        version=__version__,
        lifespan=test_lifespan,
    )

    # Copy all routes, including /health
    for route in main_app.routes:
        test_app.routes.append(route)

    install_error_handlers(test_app)
    return test_app


# Get or create test app (singleton for test session)
_test_app = None

def get_test_app():
    """Get the test app singleton."""
    global _test_app
    if _test_app is None:
        _test_app = create_test_app()
    return _test_app


@pytest.fixture(scope="session")
def mongodb_available() -> bool:
    """Check once whether the test MongoDB server answers."""
    ping_client = MongoClient(TEST_MONGODB_URL, serverSelectionTimeoutMS=2000)
    try:
        ping_client.admin.command("ping")
        return True
    except PyMongoError:
        return False
    finally:
        ping_client.close()


@pytest.fixture(autouse=True)
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Point the storage data directory at a per-test temporary directory."""
    path = tmp_path / "data"
    monkeypatch.setenv("DOCFORGE_STORAGE_DATA_DIR", str(path))
    reset_settings()
    yield path
    reset_settings()


@pytest.fixture
def storage(data_dir: Path) -> DocumentStorage:
    return DocumentStorage(data_dir / "documents")


@pytest_asyncio.fixture(scope="function")
async def mongo_client(mongodb_available):
    """Create a MongoDB client for testing.

    Skips the test when no MongoDB server is reachable at TEST_MONGODB_URL.
    """
    if not mongodb_available:
        pytest.skip(f"MongoDB not reachable at {TEST_MONGODB_URL}")
    client = AsyncMongoClient(
        TEST_MONGODB_URL,
        tz_aware=True,
        maxPoolSize=10,
        minPoolSize=1,
    )
    yield client
    await client.close()


@pytest_asyncio.fixture(scope="function")
async def init_test_db(mongo_client):
    """Initialize Beanie with a unique test database.

    Creates a unique database for each test function and drops it after the test.
    """
    db_name = f"test_docforge_{uuid.uuid4().hex[:8]}"
    db = mongo_client[db_name]

    await init_beanie(
        database=db,
        document_models=get_document_models(),
    )
    yield db

    # Cleanup: drop the entire test database
    await mongo_client.drop_database(db_name)


@pytest_asyncio.fixture(scope="function")
async def client(init_test_db) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client backed by the test database."""
    app = get_test_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def letter_fields() -> list[TemplateField]:
    """Declared fields of the sample letter template."""
    return [
        TemplateField(name="clientName", label="Client name", required=True),
        TemplateField(name="amount", field_type=FieldType.NUMBER),
        TemplateField(name="dueDate", label="Due date", field_type=FieldType.DATE),
    ]


@pytest.fixture
def letter_template_data() -> dict:
    """Request body for creating the sample letter template over the API."""
    return {
        "name": "Payment Reminder",
        "category": "letter",
        "content": "Dear {{clientName}},\nplease pay {{amount}} by {{dueDate}}.",
        "content_type": "text",
        "fields": [f.model_dump(mode="json") for f in letter_fields()],
    }


@pytest_asyncio.fixture(scope="function")
async def letter_template(init_test_db) -> Template:
    """Insert the sample letter template directly."""
    template = Template(
        name="Payment Reminder",
        content="Dear {{clientName}},\nplease pay {{amount}} by {{dueDate}}.",
        content_type=ContentType.TEXT,
        fields=letter_fields(),
    )
    await template.insert()
    return template


def make_csv(rows: list[list[str]]) -> bytes:
    """Build CSV bytes from a list of rows (first row is the header)."""
    output = io.StringIO()
    writer = csv.writer(output)
    for row in rows:
        writer.writerow(row)
    return output.getvalue().encode("utf-8")


def make_xlsx(rows: list[list]) -> bytes:
    """Build XLSX bytes from a list of rows (first row is the header)."""
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def truncate_worksheet(content: bytes) -> bytes:
    """Cut the first worksheet's XML in half, leaving the rest of the package intact."""
    source = zipfile.ZipFile(io.BytesIO(content))
    output = io.BytesIO()
    with zipfile.ZipFile(output, "w", zipfile.ZIP_DEFLATED) as target:
        for item in source.infolist():
            data = source.read(item.filename)
            if item.filename == "xl/worksheets/sheet1.xml":
                data = data[: len(data) // 2]
            target.writestr(item, data)
    return output.getvalue()


def large_letter_rows(count: int) -> list[list[str]]:
    """LETTER_ROWS header plus ``count`` valid data rows."""
    rows = [list(LETTER_ROWS[0])]
    for i in range(count):
        rows.append([f"Reminder {i}", f"Client {i}", str(100 + i), "2024-03-01"])
    return rows


# Header plus three rows; the second row lacks the required client name
LETTER_ROWS = [
    ["DOCUMENT_NAME", "clientName", "amount", "dueDate"],
    ["Reminder Acme", "Acme Ltd", "1200", "2024-03-01"],
    ["Reminder Blank", "", "50", "2024-03-02"],
    ["Reminder Globex", "Globex", "75.50", "2024-03-03"],
]


@pytest_asyncio.fixture(scope="function")
async def letter_session(letter_template):
    """A reviewed batch session built from LETTER_ROWS."""
    from docforge.services.batch_session import create_session
    from docforge.services.spreadsheet import open_spreadsheet

    return await create_session(
        letter_template.id,
        file_name="reminders.csv",
        file_type="csv",
        spreadsheet=open_spreadsheet(make_csv(LETTER_ROWS), "csv"),
    )
