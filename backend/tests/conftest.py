import os
import sys
from pathlib import Path


BACKEND_ROOT = Path(__file__).resolve().parents[1]

# Keep tests deterministic and local-only.
os.environ["DOCVAULT_SKIP_DOTENV"] = "1"
os.environ["DOCVAULT_STORAGE_BACKEND"] = "local"
os.environ["DOCVAULT_UPLOAD_DIR"] = str(BACKEND_ROOT / "test_uploads")
os.environ["DOCVAULT_WORK_DIR"] = str(BACKEND_ROOT / "test_work")
os.environ["DOCVAULT_OCR_BACKEND"] = "mock"
os.environ["DOCVAULT_OCR_LANG"] = "eng"
os.environ["DOCVAULT_SYNC_PROCESSING"] = "1"

if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

TEST_DB_PATH = BACKEND_ROOT / "test_docvault.db"
os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
if TEST_DB_PATH.exists():
    TEST_DB_PATH.unlink()

import pytest  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def _database_schema():
    from docvault.infra.db.session import init_db

    init_db()
    yield
