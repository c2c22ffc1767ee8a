"""Tests for upload services, the registry and the upload hand-off worker."""
import threading
from datetime import datetime
from pathlib import Path

import pytest

from offload.core.config import FolderOrganizationConfig
from offload.core.errors import ConfigurationError, WorkerBusyError
from offload.services.destinations import QueuedUpload
from offload.services.upload import (
    DEFAULT_MIME_TYPE,
    UploadBatch,
    UploadHandoff,
    UploadServiceRegistry,
    mime_type_for,
    remote_name_for,
)

from .fixtures import FakeUploadService, make_jpeg, record_for


def queued(path: Path, created=None, folders=None) -> QueuedUpload:
    return QueuedUpload(path, record_for(path, created=created), folders or FolderOrganizationConfig())


class TestHelpers:
    """Tests for MIME and remote-name helpers."""

    def test_mime_types(self):
        assert mime_type_for("a.jpg") == "image/jpeg"
        assert mime_type_for("clip.MOV") == "video/quicktime"
        assert mime_type_for("blob.unknownext") == DEFAULT_MIME_TYPE

    def test_remote_name_relative_to_local_root(self, tmp_path):
        path = tmp_path / "library" / "2025" / "may" / "a.jpg"
        assert remote_name_for(path, tmp_path / "library") == "2025/may/a.jpg"

    def test_remote_name_outside_root(self, tmp_path):
        path = tmp_path / "card" / "a.jpg"
        assert remote_name_for(path, tmp_path / "library", folder="Trip") == "Trip/a.jpg"
        assert remote_name_for(path) == "a.jpg"


class TestRemoteServiceBase:
    """Tests for the shared upload service behavior."""

    def test_settings_redacted(self):
        service = FakeUploadService()
        assert service.settings == {"bucket": "photos", "secretKey": "[REDACTED]"}

    def test_unique_remote_name(self):
        service = FakeUploadService(existing={"a.jpg": 10, "a (1).jpg": 10})
        assert service.generate_unique_remote_name("a.jpg", 10) == "a (2).jpg"
        assert service.generate_unique_remote_name("b.jpg", 10) == "b.jpg"

    def test_configuration_cached_until_update(self):
        service = FakeUploadService(settings={})
        assert not service.is_configured()
        service.update_settings({"bucket": "photos"})
        assert service.is_configured()

    def test_connection_result_cached(self):
        service = FakeUploadService()
        assert not service.has_recent_successful_test()
        assert service.test_connection()["success"]
        assert service.has_recent_successful_test()
        assert service.last_test_result["message"] == "Connected"

    def test_connection_error_captured(self):
        service = FakeUploadService(settings={"bucket": "photos", "unreachable": True})
        result = service.test_connection()
        assert result == {"success": False, "message": "connection refused", "details": None}
        assert not service.has_recent_successful_test()


class TestUploadServiceRegistry:
    """Tests for UploadServiceRegistry."""

    @pytest.fixture
    def registry(self):
        registry = UploadServiceRegistry()
        registry.register("fake", FakeUploadService)
        return registry

    def test_create(self, registry):
        info = registry.create("fake", {"bucket": "photos"})
        assert info == {"type": "fake", "name": "fake", "configured": True, "lastTest": None}
        assert isinstance(registry.get("fake"), FakeUploadService)

    def test_create_unknown_type(self, registry):
        with pytest.raises(ConfigurationError, match="Unknown service type: ftp"):
            registry.create("ftp")

    def test_update(self, registry):
        registry.create("fake", {})
        assert registry.update("fake", {"bucket": "photos"})["configured"] is True

    def test_update_missing(self, registry):
        with pytest.raises(ConfigurationError, match="Service not found"):
            registry.update("fake", {})

    def test_test_connection(self, registry):
        assert registry.test("fake")["success"] is False
        registry.create("fake", {"bucket": "photos"})
        assert registry.test("fake")["success"] is True

    def test_list_remove_clear(self, registry):
        registry.create("fake", {"bucket": "photos"})
        registry.add("other", FakeUploadService())
        assert [s["type"] for s in registry.list_services()] == ["fake", "other"]
        assert registry.remove("other")
        assert not registry.remove("other")
        registry.clear()
        assert registry.list_services() == []


class TestUploadHandoff:
    """Tests for the upload worker."""

    @pytest.fixture
    def files(self, tmp_path: Path) -> list[Path]:
        root = tmp_path / "library"
        return [make_jpeg(root / name, size=(16 + i, 16)) for i, name in enumerate(["a.jpg", "b.jpg", "c.jpg"])]

    def make_handoff(self, service: FakeUploadService) -> UploadHandoff:
        registry = UploadServiceRegistry()
        registry.add("fake", service)
        return UploadHandoff(registry)

    def test_run_batch(self, files, tmp_path):
        service = FakeUploadService()
        handoff = self.make_handoff(service)
        batch = UploadBatch("job", [queued(p) for p in files], ["fake"], local_root=tmp_path / "library")
        seen = []
        report = handoff.run_batch(batch, seen.append)
        assert report.uploaded == 3
        assert report.failed == 0
        assert [u["remote_name"] for u in service.uploads] == ["a.jpg", "b.jpg", "c.jpg"]
        assert service.uploads[0]["mime_type"] == "image/jpeg"
        assert service.uploads[0]["options"]["metadata"]["jobId"] == "job"
        assert len(seen) == 3

    def test_remote_duplicate_skipped(self, files):
        service = FakeUploadService(existing={"a.jpg": files[0].stat().st_size})
        report = self.make_handoff(service).run_batch(UploadBatch("job", [queued(files[0])], ["fake"]))
        assert report.skipped == 1
        assert report.results[0].message == "Duplicate, skipped"
        assert service.uploads == []

    def test_remote_duplicate_renamed(self, files):
        service = FakeUploadService(existing={"a.jpg": files[0].stat().st_size})
        batch = UploadBatch("job", [queued(files[0])], ["fake"], skip_duplicates=False)
        report = self.make_handoff(service).run_batch(batch)
        assert report.uploaded == 1
        assert report.results[0].remote_name == "a (1).jpg"

    def test_folder_used_outside_local_root(self, files):
        service = FakeUploadService()
        folders = FolderOrganizationConfig(enabled=True, mode="date", date_format="YYYY/MM")
        batch = UploadBatch("job", [queued(files[0], created=datetime(2025, 5, 26), folders=folders)], ["fake"])
        self.make_handoff(service).run_batch(batch)
        assert service.uploads[0]["remote_name"] == "2025/05/a.jpg"

    def test_failed_upload_reported(self, files):
        service = FakeUploadService(fail_names={"b.jpg"})
        report = self.make_handoff(service).run_batch(UploadBatch("job", [queued(p) for p in files], ["fake"]))
        assert report.uploaded == 2
        assert report.failed == 1
        assert report.errors == ["b.jpg (fake): quota exceeded"]

    def test_no_service_selected(self, files):
        report = self.make_handoff(FakeUploadService()).run_batch(UploadBatch("job", [queued(files[0])], []))
        assert report.error == "No upload service selected"

    def test_unknown_service(self, files):
        report = self.make_handoff(FakeUploadService()).run_batch(UploadBatch("job", [queued(files[0])], ["s3"]))
        assert report.failed == 1
        assert report.results[0].message == "Upload service not available: s3"

    def test_incomplete_configuration(self, files):
        report = self.make_handoff(FakeUploadService(settings={})).run_batch(
            UploadBatch("job", [queued(p) for p in files], ["fake"])
        )
        assert report.failed == 3
        assert report.results[0].message == "Incomplete fake configuration: bucket is required"

    def test_submit_and_busy(self, files):
        gate = threading.Event()
        service = FakeUploadService(gate=gate)
        handoff = self.make_handoff(service)
        done = threading.Event()
        reports = []

        def on_complete(report):
            reports.append(report)
            done.set()

        handoff.submit(UploadBatch("job-1", [queued(p) for p in files], ["fake"]), on_complete)
        assert service.started.wait(5)
        assert handoff.busy
        with pytest.raises(WorkerBusyError):
            handoff.submit(UploadBatch("job-2", [], ["fake"]), on_complete)

        gate.set()
        assert done.wait(5)
        assert not handoff.busy
        assert reports[0].uploaded == 3

    def test_cancel_stops_after_current_file(self, files):
        gate = threading.Event()
        service = FakeUploadService(gate=gate)
        handoff = self.make_handoff(service)
        done = threading.Event()
        reports = []

        def on_complete(report):
            reports.append(report)
            done.set()

        handoff.submit(UploadBatch("job", [queued(p) for p in files], ["fake"]), on_complete)
        assert service.started.wait(5)
        assert not handoff.cancel("other-job")
        assert handoff.cancel("job")
        gate.set()
        assert done.wait(5)
        assert reports[0].cancelled
        assert reports[0].uploaded == 1
