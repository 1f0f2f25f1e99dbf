"""Tests for the storage API startup cleanup of orphan backup temp files."""

import logging
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from services.storage_api import main as main_module


class TestStartupCleanupHook:
    """Tests for the cleanup run from the FastAPI lifespan."""

    def test_cleanup_removes_orphans(self, tmp_path):
        (tmp_path / "bible-aura-backup-2024-01-01.json.tmp").write_bytes(b"orphan")

        # BACKUP_DIR is read from config at call time
        with patch("aura_store.config.BACKUP_DIR", tmp_path):
            main_module._cleanup_orphan_temp_files_safe()

        assert list(tmp_path.iterdir()) == []

    def test_cleanup_never_crashes(self):
        """Startup cleanup should never raise, whatever the filesystem does."""
        mock_dir = MagicMock()
        mock_dir.exists.side_effect = PermissionError("Access denied")

        with patch("aura_store.config.BACKUP_DIR", mock_dir):
            main_module._cleanup_orphan_temp_files_safe()

    def test_cleanup_logs_count(self, tmp_path, caplog):
        (tmp_path / "a.json.tmp").write_bytes(b"orphan")
        (tmp_path / "b.json.tmp").write_bytes(b"orphan")

        with patch("aura_store.config.BACKUP_DIR", tmp_path):
            with caplog.at_level(logging.INFO, logger="services.storage_api.main"):
                main_module._cleanup_orphan_temp_files_safe()

        assert "removed 2 orphan temp files" in caplog.text

    def test_lifespan_runs_cleanup(self, sqlite_store, tmp_path):
        (tmp_path / "orphan.json.tmp").write_bytes(b"orphan")
        main_module.override_local_store(sqlite_store)
        try:
            with patch("aura_store.config.BACKUP_DIR", tmp_path):
                with TestClient(main_module.app) as test_client:
                    assert test_client.get("/health").status_code == 200
        finally:
            main_module.override_local_store(None)

        assert not (tmp_path / "orphan.json.tmp").exists()
