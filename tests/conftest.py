from unittest.mock import MagicMock

import pytest

from provider_agent.config import AgentConfig
from provider_agent.jobs import Job


@pytest.fixture
def make_job():
    def _make(job_id="j1", image="alpine", cmd=("sh", "-c", "true"), outputs=(), timeout_sec=None):
        return Job(job_id=job_id, image=image, cmd=tuple(cmd), outputs=tuple(outputs), timeout_sec=timeout_sec)
    return _make


@pytest.fixture
def config(tmp_path):
    return AgentConfig(
        provider      = "0xabcdef1234567890abcdef1234567890abcdef12",
        output_root   = str(tmp_path / "outputs"),
        poll_interval = 0.01,
    )


@pytest.fixture
def mock_container():
    container = MagicMock()
    container.name = "job-j1"
    container.wait.return_value = {"StatusCode": 0}
    container.logs.side_effect = lambda stdout=True, stderr=True: b"hi\n" if stdout else b""
    return container


@pytest.fixture
def mock_client(mock_container):
    client = MagicMock()
    client.containers.create.return_value = mock_container
    return client
