"""Tests for web application functionality."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from apps.web.main import app
from lockbump.errors import (
    NoOpUpdate,
    RequirementNotFound,
    ResolverNonZeroExit,
    ResolverTimeout,
    WorkspaceAcquisitionFailed,
)
from lockbump.models import ManagedFile


def update_payload():
    return {
        "dependency_files": [
            {"name": "requirements/test.in", "content": "Attrs<=17.4.0\n"},
            {"name": "requirements/test.txt", "content": "attrs==17.3.0\n"},
        ],
        "dependencies": [
            {
                "name": "attrs",
                "version": "18.1.0",
                "previous_version": "17.3.0",
                "requirements": [{"file": "requirements/test.in", "requirement": "<=18.1.0"}],
                "previous_requirements": [{"file": "requirements/test.in", "requirement": "<=17.4.0"}],
            }
        ],
        "credentials": [{"type": "python_index", "host": "pypi.example.com"}],
    }


class TestWebApp:
    """Test web application endpoints."""

    def setup_method(self):
        """Setup test fixtures."""
        self.client = TestClient(app)

    def test_health_check(self):
        response = self.client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_update_api_success(self):
        """Should return only the changed files."""
        with patch("apps.web.main.update_files") as mock_update:
            mock_update.return_value = [
                ManagedFile(name="requirements/test.in", content="Attrs<=18.1.0\n"),
                ManagedFile(name="requirements/test.txt", content="attrs==18.1.0\n"),
            ]
            response = self.client.post("/api/update", json=update_payload())

        assert response.status_code == 200
        data = response.json()
        assert [f["name"] for f in data["updated_files"]] == [
            "requirements/test.in",
            "requirements/test.txt",
        ]
        assert data["updated_files"][1]["content"] == "attrs==18.1.0\n"

        files, dependencies = mock_update.call_args.args
        assert files[0].name == "requirements/test.in"
        assert dependencies[0].requirement_for("requirements/test.in").requirement == "<=18.1.0"
        assert mock_update.call_args.kwargs["credentials"][0]["host"] == "pypi.example.com"

    def test_update_api_requires_files(self):
        payload = update_payload()
        payload["dependency_files"] = []
        response = self.client.post("/api/update", json=payload)
        assert response.status_code == 400

    def test_update_api_requires_dependencies(self):
        payload = update_payload()
        payload["dependencies"] = []
        response = self.client.post("/api/update", json=payload)
        assert response.status_code == 400

    @pytest.mark.parametrize(
        "error, status",
        [
            (NoOpUpdate("Update of attrs changed no files"), 422),
            (RequirementNotFound("Could not find attrs<=17.4.0"), 409),
            (ResolverTimeout("Resolver timed out after 600s"), 504),
            (ResolverNonZeroExit("Resolver exited with status 2", returncode=2), 502),
            (WorkspaceAcquisitionFailed("Could not create workspace"), 500),
        ],
    )
    def test_update_api_errors(self, error, status):
        """Typed errors map to status codes with a structured body."""
        with patch("apps.web.main.update_files") as mock_update:
            mock_update.side_effect = error
            response = self.client.post("/api/update", json=update_payload())

        assert response.status_code == status
        detail = response.json()["detail"]
        assert detail["code"] == error.code
        assert detail["message"] == error.args[0]

    def test_sanitize_api(self, sample_setup_py):
        response = self.client.post(
            "/api/sanitize",
            json={"content": sample_setup_py, "replacement_version": "1.2.3"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["degraded"] is False
        assert 'version="1.2.3"' in data["content"]

    def test_sanitize_api_degraded(self):
        response = self.client.post("/api/sanitize", json={"content": "setup(\n"})

        assert response.status_code == 200
        data = response.json()
        assert data["degraded"] is True
        assert data["content"] == "setup(\n"

    def test_merge_api(self, load_fixture):
        response = self.client.post(
            "/api/merge",
            json={
                "original": load_fixture("requirements", "pip_compile_hashes.txt"),
                "fresh": load_fixture("resolver_output", "hashes_attrs_18.1.0.txt"),
            },
        )

        assert response.status_code == 200
        content = response.json()["content"]
        assert "attrs==18.1.0 \\\n" in content
        assert "--generate-hashes --output-file requirements/test.txt" in content

    def test_merge_api_requires_original(self):
        response = self.client.post("/api/merge", json={"original": "", "fresh": "attrs==18.1.0\n"})
        assert response.status_code == 400
