"""HTTP tests for the pipeline, optimize and remove-background endpoints."""

import json

import pytest
from fastapi.testclient import TestClient

from imagepipe.api.deps import get_engine, get_storage
from imagepipe.core.constants import Operation
from imagepipe.main import app
from imagepipe.pipeline.engine import PipelineEngine
from imagepipe.pipeline.step_resolver import StepResolver, build_step_registry

from helpers import image_bytes


@pytest.fixture
def client(storage, make_engine):
    engine = make_engine()
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


def png(name):
    return (name, image_bytes(), "image/png")


def uploads(field, *names):
    return [(field, png(name)) for name in names]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


class TestRunPipeline:
    """POST /api/v1/pipeline/run"""

    URL = "/api/v1/pipeline/run"

    def test_success(self, client, optimization_client):
        response = client.post(
            self.URL,
            files=uploads("images", "a.png", "b.png"),
            data={"pipeline": json.dumps([
                {"operation": "resize", "params": {"width": 100}},
                {"operation": "optimize", "params": {"quality": 80, "format": "webp"}},
            ])},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["message"] == "Pipeline executed successfully."
        assert body["data"]["pipeline_summary"] == [
            {"step": 1, "operation": "resize", "output_files": 2, "failed_files": 0},
            {"step": 2, "operation": "optimize", "output_files": 2, "failed_files": 0},
        ]
        assert len(body["data"]["final_results"]) == 2
        assert all(url.startswith("/uploads/upload_") for url in body["data"]["final_results"])
        assert len(optimization_client.calls) == 4

    def test_partial_success_reports_counts(self, client, optimization_client):
        optimization_client.fail_names = {"b.png"}
        response = client.post(
            self.URL,
            files=uploads("images", "a.png", "b.png"),
            data={"pipeline": json.dumps([{"operation": "optimize"}])},
        )

        assert response.status_code == 200
        summary = response.json()["data"]["pipeline_summary"][0]
        assert summary["output_files"] == 1
        assert summary["failed_files"] == 1

    def test_missing_images(self, client):
        response = client.post(self.URL, data={"pipeline": "[]"})
        assert response.status_code == 400
        assert response.json() == {"status": "error", "message": "No image files provided for the pipeline."}

    def test_missing_pipeline(self, client):
        response = client.post(self.URL, files=uploads("images", "a.png"))
        assert response.status_code == 400
        assert response.json()["message"] == "Pipeline definition not provided."

    @pytest.mark.parametrize("pipeline", ["{not json", '{"operation": "optimize"}', '"optimize"'])
    def test_definition_not_a_json_array(self, client, pipeline):
        response = client.post(self.URL, files=uploads("images", "a.png"), data={"pipeline": pipeline})
        assert response.status_code == 400
        assert "Must be valid JSON array" in response.json()["message"]

    def test_invalid_upload(self, client, storage, optimization_client):
        response = client.post(
            self.URL,
            files=[("images", ("notes.txt", b"plain text", "image/png"))],
            data={"pipeline": json.dumps([{"operation": "optimize"}])},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Invalid file uploads."
        assert "notes.txt" in body["details"]["errors"]
        assert optimization_client.calls == []

    def test_invalid_definition_lists_every_issue(self, client, storage, optimization_client):
        response = client.post(
            self.URL,
            files=uploads("images", "a.png"),
            data={"pipeline": json.dumps([
                {"operation": "sharpen"},
                {"operation": "resize", "params": {"width": "abc"}},
            ])},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Invalid pipeline definition."
        assert [e["kind"] for e in body["details"]["errors"]] == ["UnsupportedOperation", "InvalidParamType"]
        assert optimization_client.calls == []
        assert list(storage.upload_dir.iterdir()) == []

    def test_empty_definition(self, client):
        response = client.post(self.URL, files=uploads("images", "a.png"), data={"pipeline": "[]"})
        assert response.status_code == 400
        assert response.json()["details"]["errors"][0]["kind"] == "EmptyPipeline"

    def test_fatal_step_failure(self, client, background_client):
        background_client.fail_names = {"a.png"}
        response = client.post(
            self.URL,
            files=uploads("images", "a.png", "b.png"),
            data={"pipeline": json.dumps([{"operation": "remove_background"}])},
        )

        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "error"
        assert body["details"]["reason"] == "ProcessingFailed"
        assert body["details"]["summary"][0]["failed_files"] == 1
        assert "data" not in body

    def test_integer_parameter_beyond_float_range(self, client, optimization_client):
        huge = "1" + "0" * 400
        response = client.post(
            self.URL,
            files=uploads("images", "a.png"),
            data={"pipeline": '[{"operation": "resize", "params": {"width": %s}}]' % huge},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Invalid pipeline definition."
        assert body["details"]["errors"][0]["param"] == "width"
        assert optimization_client.calls == []

    def test_unregistered_operation_is_client_error(self, client, optimization_client, background_client):
        registry = build_step_registry(optimization_client, background_client)
        del registry[Operation.REMOVE_BACKGROUND]
        engine = PipelineEngine(StepResolver(registry))
        app.dependency_overrides[get_engine] = lambda: engine

        response = client.post(
            self.URL,
            files=uploads("images", "a.png"),
            data={"pipeline": json.dumps([{"operation": "remove_background"}])},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "error"
        assert body["details"]["reason"] == "UnsupportedOperation"
        assert background_client.calls == []

    def test_exhausted_pipeline(self, client, optimization_client):
        optimization_client.fail_names = {"a.png"}
        response = client.post(
            self.URL,
            files=uploads("images", "a.png"),
            data={"pipeline": json.dumps([{"operation": "optimize"}, {"operation": "convert", "params": {"format": "png"}}])},
        )

        assert response.status_code == 500
        assert response.json()["details"]["reason"] == "PipelineExhausted"


class TestOptimize:
    """POST /api/v1/optimize"""

    URL = "/api/v1/optimize"

    def test_optimize_images(self, client, optimization_client):
        response = client.post(self.URL, files=uploads("images", "a.png", "b.png"), data={"quality": "75"})

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Images optimized successfully."
        assert len(body["data"]["results"]) == 2
        assert {op for op, _ in optimization_client.calls} == {"optimize"}

    def test_file_field_and_dimensions(self, client, optimization_client):
        response = client.post(self.URL, files=uploads("file", "a.png"), data={"width": "300", "format": "webp"})

        assert response.status_code == 200
        assert [op for op, _ in optimization_client.calls] == ["resize", "optimize"]

    def test_no_files(self, client):
        response = client.post(self.URL, data={"quality": "75"})
        assert response.status_code == 400
        assert response.json()["message"] == "No image files provided."

    def test_invalid_parameters(self, client, optimization_client):
        response = client.post(self.URL, files=uploads("images", "a.png"), data={"quality": "abc"})

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Invalid optimization parameters."
        assert body["details"]["errors"][0]["param"] == "quality"
        assert optimization_client.calls == []

    def test_parameter_beyond_float_range(self, client, optimization_client):
        response = client.post(self.URL, files=uploads("images", "a.png"), data={"width": "9" * 400})

        assert response.status_code == 400
        assert response.json()["details"]["errors"][0]["param"] == "width"
        assert optimization_client.calls == []


class TestRemoveBackground:
    """POST /api/v1/remove-background"""

    URL = "/api/v1/remove-background"

    def test_success(self, client, background_client):
        response = client.post(self.URL, files=uploads("image", "cat.png"))

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Background removed successfully."
        assert body["data"]["resultUrl"].startswith("/uploads/")
        assert len(background_client.calls) == 1

    def test_missing_image(self, client):
        response = client.post(self.URL, files=uploads("images", "cat.png"))
        assert response.status_code == 400
        assert response.json()["message"] == "No image file provided."

    def test_invalid_image(self, client):
        response = client.post(self.URL, files=[("image", ("cat.png", b"GIF89 nope", "image/png"))])
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid file upload."

    def test_provider_failure(self, client, background_client):
        background_client.fail_names = {"cat.png"}
        response = client.post(self.URL, files=uploads("image", "cat.png"))

        assert response.status_code == 500
        assert response.json()["details"]["reason"] == "ProcessingFailed"
