"""Tests for owner operations on SyncService."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from txsync.core.errors import TransifexAPIError
from txsync.core.polling import PollPolicy
from txsync.core.service import SyncService, mask_config, status_counts
from txsync.core.store import JsonFileBackend, MemoryBackend
from txsync.core.webhook import WebhookRequest
from txsync.models.config import MASKED_SECRET, Settings, SyncConfig

from conftest import FakeClient, FakeWorkspace, make_file, make_folder, make_mapping

RESOURCE = "o:acme:p:docs:r:guide"


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def service(backend: MemoryBackend, workspace: FakeWorkspace, client: FakeClient, fast_policy: PollPolicy) -> SyncService:
    return SyncService(backend, workspace=workspace, client=client, policy=fast_policy)


def _config(**kwargs) -> SyncConfig:
    return SyncConfig(
        settings=kwargs.pop("settings", Settings(api_token="real-token", webhook_secret="real-secret")),
        folders=kwargs.pop("folders", [make_folder("f1")]),
        file_mappings=kwargs.pop("file_mappings", [make_mapping(resource_id=RESOURCE)]),
    )


class TestConfigOperations:
    """Tests for get_config and save_config."""

    def test_get_config_masks_secrets(self, service: SyncService) -> None:
        service.store.write(_config())

        data = service.get_config()

        assert data["settings"]["apiToken"] == MASKED_SECRET
        assert data["settings"]["webhookSecret"] == MASKED_SECRET
        assert data["folders"][0]["id"] == "f1"

    def test_mask_leaves_empty_secret(self) -> None:
        data = mask_config(_config(settings=Settings(api_token="tok")))

        assert data["settings"]["webhookSecret"] in (None, "")

    def test_save_keeps_masked_secrets(self, service: SyncService) -> None:
        service.store.write(_config())
        data = service.get_config()
        data["settings"]["checkIntervalMinutes"] = 30

        result = service.save_config(data)

        assert result.success
        settings = service.store.read().settings
        assert settings.api_token == "real-token"
        assert settings.webhook_secret == "real-secret"
        assert settings.check_interval_minutes == 30

    def test_save_replaces_secret(self, service: SyncService) -> None:
        service.store.write(_config())
        data = service.get_config()
        data["settings"]["apiToken"] = "new-token"

        service.save_config(data)

        assert service.store.read().settings.api_token == "new-token"

    def test_save_requires_token(self, service: SyncService) -> None:
        result = service.save_config({"settings": {"apiToken": ""}})

        assert not result.success
        assert result.message == "API token is required"
        assert service.store.read() == SyncConfig()

    def test_save_rejects_invalid_folder(self, service: SyncService) -> None:
        service.store.write(_config())
        data = service.get_config()
        data["folders"][0]["triggers"] = []

        result = service.save_config(data)

        assert not result.success
        assert "Invalid configuration" in result.message
        assert len(service.store.read().folders) == 1

    def test_save_rejects_duplicate_folder_ids(self, service: SyncService) -> None:
        service.store.write(_config())
        data = service.get_config()
        data["folders"].append(dict(data["folders"][0]))

        result = service.save_config(data)

        assert not result.success
        assert "unique" in result.message

    def test_save_leaves_file_mappings(self, service: SyncService) -> None:
        service.store.write(_config())
        data = service.get_config()
        data["fileMappings"] = []

        service.save_config(data)

        assert len(service.store.read().file_mappings) == 1


class TestConnection:
    """Tests for test_connection."""

    def test_invalid_token(self, backend: MemoryBackend) -> None:
        with patch("txsync.core.service.TransifexClient") as client_cls:
            client_cls.return_value.verify_connection.side_effect = TransifexAPIError("unauthorized", 401)

            result = SyncService(backend).test_connection("bad-token")

        assert not result.success
        assert result.message == "Invalid API token"
        client_cls.assert_called_once_with(api_token="bad-token")

    def test_connected(self, backend: MemoryBackend) -> None:
        with patch("txsync.core.service.TransifexClient"):
            result = SyncService(backend).test_connection("good-token")

        assert result.success

    def test_missing_token(self, backend: MemoryBackend) -> None:
        with patch("txsync.core.client.load_dotenv"):
            result = SyncService(backend).test_connection()

        assert not result.success
        assert result.message == "API token is required"


class TestMapResource:
    """Tests for map_resource."""

    def test_maps_pending_slug(self, service: SyncService) -> None:
        service.store.write(_config(file_mappings=[make_mapping()]))

        result = service.map_resource("doc1", "guide")

        assert result.success
        mapping = service.store.read().get_file_mapping("doc1")
        assert mapping.resource_id == RESOURCE
        assert mapping.date_mapped

    def test_no_pending_mapping_fails_without_writing(self, service: SyncService) -> None:
        service.store.write(_config())
        before = service.store.read()
        service.store.write = MagicMock()

        result = service.map_resource("doc1", "other")
        missing = service.map_resource("nope", "guide")

        assert not result.success
        assert not missing.success
        service.store.write.assert_not_called()
        assert service.store.read() == before
        assert service.activity.entries() == []

    def test_blank_resource(self, service: SyncService) -> None:
        service.store.write(_config(file_mappings=[make_mapping()]))

        assert not service.map_resource("doc1", "  ").success
        assert service.store.read().get_file_mapping("doc1").is_pending


class TestFolders:
    """Tests for folder operations and status counts."""

    def test_remove_folder_orphans_mappings(self, service: SyncService) -> None:
        service.store.write(_config())

        result = service.remove_folder("f1")

        assert result.success
        assert result.data["orphaned"] == 1
        assert service.get_status_counts() == {"total": 1, "pending": 0, "mapped": 0, "orphaned": 1}

    def test_remove_unknown_folder(self, service: SyncService) -> None:
        assert not service.remove_folder("nope").success

    def test_add_folder(self, service: SyncService) -> None:
        service.add_folder(make_folder("f2"))

        assert [f.id for f in service.store.read().folders] == ["f2"]

    def test_status_counts(self) -> None:
        config = _config(file_mappings=[
            make_mapping("doc1", resource_id=RESOURCE),
            make_mapping("doc2"),
            make_mapping("doc3", folder_id="gone"),
        ])

        assert status_counts(config) == {"total": 3, "pending": 1, "mapped": 1, "orphaned": 1}

    def test_list_languages(self, backend: MemoryBackend, workspace: FakeWorkspace) -> None:
        client = MagicMock()
        client.get_project_languages.return_value = [{"id": "l:es", "code": "es", "name": "Spanish"}]
        service = SyncService(backend, workspace=workspace, client=client)
        service.store.write(_config())

        result = service.list_languages("f1")

        assert result.data["languages"] == ["es"]
        client.get_project_languages.assert_called_once_with("o:acme:p:docs")


class TestTriggers:
    """Tests for manual and scheduled triggers."""

    def test_trigger_upload(self, service: SyncService, workspace: FakeWorkspace, client: FakeClient) -> None:
        service.store.write(_config())
        workspace.add("src-f1", make_file("doc1", modified="2026-10-03T00:00:00Z"))

        result = service.trigger_upload("doc1")

        assert result.success
        assert client.uploads[0][0] == RESOURCE

    def test_trigger_upload_pending(self, service: SyncService, client: FakeClient) -> None:
        service.store.write(_config(file_mappings=[make_mapping()]))

        result = service.trigger_upload("doc1")

        assert not result.success
        assert client.uploads == []

    def test_trigger_upload_orphaned(self, service: SyncService, client: FakeClient) -> None:
        service.store.write(_config(folders=[]))

        assert not service.trigger_upload("doc1").success
        assert client.uploads == []

    def test_trigger_download(self, service: SyncService, workspace: FakeWorkspace) -> None:
        service.store.write(_config())

        result = service.trigger_download(RESOURCE, "fr")

        assert result.success
        assert workspace.imported[0]["name"] == "Guide_FR.docx"

    def test_scheduled_check_records_new_files(self, service: SyncService, workspace: FakeWorkspace) -> None:
        service.store.write(_config(file_mappings=[]))
        workspace.add("src-f1", make_file("doc7", name="New.docx"))

        changes = service.run_scheduled_check()

        assert changes is not None
        assert service.get_status_counts()["pending"] == 1

    def test_scheduled_check_never_raises(self, service: SyncService) -> None:
        service.store.write(_config())
        service.detector = MagicMock(side_effect=RuntimeError("boom"))

        assert service.run_scheduled_check() is None
        assert "Scheduled check failed: boom" in service.activity.entries()[0]

    def test_rescan_folder(self, service: SyncService, workspace: FakeWorkspace) -> None:
        service.store.write(_config(file_mappings=[]))
        workspace.add("src-f1", make_file("doc1"))

        result = service.rescan_folder("f1")

        assert result.success
        assert result.data["newFiles"] == 1

    def test_handle_webhook(self, service: SyncService, workspace: FakeWorkspace) -> None:
        service.store.write(_config(settings=Settings(api_token="tok")))
        body = b'{"event": "translation_completed", "resource": "o:acme:p:docs:r:guide", "language": "es"}'

        response = service.handle_webhook(WebhookRequest(body=body))

        assert response.status == 200
        assert workspace.imported[0]["folder_id"] == "tr-f1"

    def test_clear_activity_log(self, service: SyncService) -> None:
        service.activity.append("something")

        service.clear_activity_log()

        assert service.activity.entries() == []


class TestFromHome:
    """Tests for file-backed construction."""

    def test_from_home(self, tmp_path: Path, workspace: FakeWorkspace) -> None:
        SyncService.from_home(tmp_path, workspace=workspace).add_folder(make_folder("f1"))

        service = SyncService.from_home(tmp_path, workspace=workspace)

        assert [f.id for f in service.store.read().folders] == ["f1"]
        assert (tmp_path / "store.json").exists()

    def test_corrupt_store_file_repaired_by_save(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        path.write_text("garbage")
        service = SyncService(JsonFileBackend(path))

        assert service.get_config()["folders"] == []
        result = service.save_config({"settings": {"apiToken": "tok"}, "folders": []})

        assert result.success
        assert service.store.read().settings.api_token == "tok"


class TestWriteFailures:
    """Owner operations report storage failures instead of raising."""

    @pytest.fixture
    def failing_service(self, service: SyncService) -> SyncService:
        service.store.write(_config(file_mappings=[make_mapping()]))
        service.store.write = MagicMock(side_effect=OSError("disk full"))
        return service

    def test_save_config(self, failing_service: SyncService) -> None:
        result = failing_service.save_config(failing_service.get_config())

        assert not result.success
        assert "disk full" in result.message

    def test_map_resource(self, failing_service: SyncService) -> None:
        result = failing_service.map_resource("doc1", "guide")

        assert not result.success
        assert failing_service.store.read().get_file_mapping("doc1").is_pending

    def test_add_and_remove_folder(self, failing_service: SyncService) -> None:
        assert not failing_service.add_folder(make_folder("f2")).success
        assert not failing_service.remove_folder("f1").success
        assert [f.id for f in failing_service.store.read().folders] == ["f1"]


class TestWatch:
    """Tests for the watch loop."""

    def test_stop_ends_loop(self, service: SyncService) -> None:
        service.run_scheduled_check = MagicMock(side_effect=service.stop)

        service.watch(interval_minutes=60)

        service.run_scheduled_check.assert_called_once()
        assert service.cancel.is_set()

    def test_stopped_service_does_not_check(self, service: SyncService) -> None:
        service.run_scheduled_check = MagicMock()
        service.stop()

        service.watch(interval_minutes=60)

        service.run_scheduled_check.assert_not_called()


class TestSharedDocument:
    """A document listed under two folder mappings keeps one mapping per folder."""

    OTHER = "o:acme:p:docs:r:guide-copy"

    def test_upload_updates_only_that_folder(
        self, service: SyncService, workspace: FakeWorkspace, client: FakeClient
    ) -> None:
        service.store.write(_config(
            folders=[make_folder("f1"), make_folder("f2")],
            file_mappings=[
                make_mapping("doc1", folder_id="f1", resource_id=RESOURCE),
                make_mapping("doc1", folder_id="f2", resource_id=self.OTHER),
            ],
        ))
        workspace.add("src-f2", make_file("doc1", modified="2026-10-07T00:00:00Z"))

        result = service.trigger_upload("doc1", "f2")

        assert result.success
        assert client.uploads[0][0] == self.OTHER
        config = service.store.read()
        assert config.get_file_mapping("doc1", "f2").last_modified == "2026-10-07T00:00:00Z"
        assert config.get_file_mapping("doc1", "f1").last_modified == "2026-10-01T10:00:00Z"

    def test_map_resource_in_chosen_folder(self, service: SyncService) -> None:
        service.store.write(_config(
            folders=[make_folder("f1"), make_folder("f2")],
            file_mappings=[make_mapping("doc1", folder_id="f1"), make_mapping("doc1", folder_id="f2")],
        ))

        result = service.map_resource("doc1", "guide", folder_id="f2")

        assert result.success
        config = service.store.read()
        assert config.get_file_mapping("doc1", "f2").resource_id == RESOURCE
        assert config.get_file_mapping("doc1", "f1").is_pending

    def test_map_resource_skips_already_mapped_folder(self, service: SyncService) -> None:
        service.store.write(_config(
            folders=[make_folder("f1"), make_folder("f2")],
            file_mappings=[
                make_mapping("doc1", folder_id="f1", resource_id=RESOURCE),
                make_mapping("doc1", folder_id="f2"),
            ],
        ))

        result = service.map_resource("doc1", "guide-copy")

        assert result.success
        assert service.store.read().get_file_mapping("doc1", "f2").resource_id == self.OTHER
