"""Shared pytest fixtures for all tests."""

import pytest

from cli.config import Config
from controller.repositories.week_repository import WeekRepository
from controller.services.integrity_auditor import IntegrityAuditor
from controller.services.week_linker import WeekAssetLinker
from storage.backend import StorageBackend
from storage.chunk_store import ChunkStore
from storage.file_catalog import FileCatalog
from storage.range_streamer import RangeStreamer


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .weekvault directory
    """
    config_dir = tmp_path / '.weekvault'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir, tmp_path):
    """
    Create temporary config instance with uploads/downloads under tmp_path.

    Returns:
        Config instance with temp config file
    """
    config = Config(temp_config_dir / 'config.json')
    config.data['uploads_dir'] = str(tmp_path / 'uploads')
    config.data['downloads_dir'] = str(tmp_path / 'downloads')
    config.data['caller_id'] = 'tester'
    return config


@pytest.fixture
def backend(tmp_path) -> StorageBackend:
    """
    Fresh SQLite database with the schema created.
    """
    backend = StorageBackend(str(tmp_path / "data" / "test.db"))
    backend.init_schema()
    return backend


@pytest.fixture
def chunk_store(backend) -> ChunkStore:
    return ChunkStore(backend)


@pytest.fixture
def small_chunk_store(backend) -> ChunkStore:
    """Chunk store with 16-byte chunks so small files span many chunks."""
    return ChunkStore(backend, chunk_size=16)


@pytest.fixture
def catalog(backend) -> FileCatalog:
    return FileCatalog(backend)


@pytest.fixture
def weeks(backend) -> WeekRepository:
    return WeekRepository(backend)


@pytest.fixture
def linker(chunk_store, catalog, weeks) -> WeekAssetLinker:
    return WeekAssetLinker(chunk_store, catalog, weeks)


@pytest.fixture
def auditor(chunk_store, catalog, weeks) -> IntegrityAuditor:
    return IntegrityAuditor(chunk_store, catalog, weeks)


@pytest.fixture
def streamer(small_chunk_store, catalog) -> RangeStreamer:
    return RangeStreamer(small_chunk_store, catalog)
