import os
import shutil
import sys
import tempfile
from pathlib import Path

import bcrypt
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# The app reads its configuration at import time.
ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct horse battery staple"
DATA_ROOT = Path(tempfile.mkdtemp(prefix="troubleshooter-tests-"))

os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["JWT_SECRET"] = "test-jwt-secret-with-enough-length-for-hs256"
os.environ["ADMIN_USERNAME"] = ADMIN_USERNAME
os.environ["ADMIN_PASSWORD_HASH"] = bcrypt.hashpw(
    ADMIN_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)
).decode("utf-8")
os.environ["SETTINGS_PATH"] = str(DATA_ROOT / "settings.json")
os.environ["SCRIPTS_DIR"] = str(DATA_ROOT / "scripts")
os.environ["LOGIN_FAILURE_DELAY"] = "0"

from troubleshooter.playbooks import parse_catalog  # noqa: E402


SAMPLE_CATALOG = {
    "network": [
        {
            "name": "DNS Outage",
            "keywords": ["dns", "resolve"],
            "questions": ["Q1"],
            "steps": ["S1"],
            "commands": {"Windows": ["ipconfig /flushdns"]},
        }
    ]
}


@pytest.fixture()
def sample_catalog():
    return parse_catalog(SAMPLE_CATALOG)


@pytest.fixture(scope="session", autouse=True)
def remove_data_root():
    yield
    shutil.rmtree(DATA_ROOT, ignore_errors=True)
