"""Global pytest configuration and fixtures for all tests."""

import sys
from pathlib import Path
import pytest

# Make the project root and this directory importable
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from charts import FakeS3Client, FakeSession


@pytest.fixture
def fake_s3():
    """Empty fake bucket named charts-bucket."""
    return FakeS3Client("charts-bucket")


@pytest.fixture
def patched_session(fake_s3, monkeypatch):
    """Route boto3.Session to the fake bucket for CLI runs.

    Only the 'default' profile is known; any other profile raises
    ProfileNotFound like a real session would.
    """
    import helm_index_restore.storage as storage

    monkeypatch.setattr(FakeSession, "client_instance", fake_s3)
    monkeypatch.setattr(storage.boto3, "Session", FakeSession)
    return fake_s3
