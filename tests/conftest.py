"""Common test fixtures for the Strata vault."""

import tempfile
from pathlib import Path

import pytest

from strata_vault.config import config
from strata_vault.services.vault_service import VaultService
from strata_vault.storage.connection_repository import ConnectionRepository
from strata_vault.storage.entry_repository import EntryRepository


@pytest.fixture
def temp_vault():
    """Create a temporary vault root directory."""
    with tempfile.TemporaryDirectory() as vault_dir:
        yield Path(vault_dir)


@pytest.fixture
def test_config(temp_vault, monkeypatch):
    """Point the global config at the temporary vault (auto-restored)."""
    monkeypatch.setattr(config, "vault_path", temp_vault)
    config.ensure_vault()
    yield config


@pytest.fixture
def connection_repository(test_config):
    """Create a connection repository on the test vault."""
    yield ConnectionRepository(test_config.get_connections_path())


@pytest.fixture
def entry_repository(test_config, connection_repository):
    """Create a test entry repository."""
    yield EntryRepository(
        entries_dir=test_config.get_entries_dir(),
        connections=connection_repository,
    )


@pytest.fixture
def vault_service(entry_repository):
    """Create a test VaultService."""
    service = VaultService(repository=entry_repository)
    service.initialize()
    yield service
