# conftest.py
import pytest

from pynlfem.utils.reporting import ReportConfig, configure_reporting


@pytest.fixture(autouse=True)
def quiet_reporting():
    """Warnings only, console only; restored after every test."""
    configure_reporting(ReportConfig())
    yield
    configure_reporting(ReportConfig())
