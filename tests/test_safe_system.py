import pytest

from netwatch.safe_system import (
    SafeSystemMonitor,
    format_bytes,
    format_uptime,
)


def test_format_bytes_small():
    assert format_bytes(512) == "512 B"