import io
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from app import app as flask_app, init_storage  # noqa: E402


@pytest.fixture
def app(tmp_path):
    """App with every storage path moved under tmp_path."""
    dist = tmp_path / "dist"
    dist.mkdir()
    flask_app.config.update(
        TESTING=True,
        UPLOAD_FOLDER=str(tmp_path / "uploads"),
        SCORES_DB=str(tmp_path / "scores.db"),
        LEGACY_SCORES_FILE=str(tmp_path / "scores.json"),
        FRONTEND_DIST=str(dist),
    )
    init_storage(flask_app)
    yield flask_app


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture
def upload(client):
    """Post one file under the "file" field."""
    def _upload(content=b"%PDF-1.4 test", name="notes.pdf", mimetype="application/pdf"):
        return client.post(
            "/upload",
            data={"file": (io.BytesIO(content), name, mimetype)},
            content_type="multipart/form-data",
        )
    return _upload
