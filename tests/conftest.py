import pytest

from opsweep import bootstrap


@pytest.fixture(scope="session", autouse=True)
def setup_opsweep_backends() -> None:
    """Register built-in backends once for the entire test session."""

    bootstrap()
