import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from monitor import Monitor


def test_alert_fires_once_at_threshold():
    alerts = []
    monitor = Monitor(failure_threshold=3, window_seconds=60, alert_handler=alerts.append)

    monitor.pass_()
    monitor.fail()
    monitor.fail()
    assert alerts == []

    monitor.fail()
    assert len(alerts) == 1
    assert "3 server errors within 60s" in alerts[0]

    monitor.fail()
    assert len(alerts) == 1


def test_stats():
    monitor = Monitor(failure_threshold=5)
    monitor.pass_()
    monitor.pass_()
    monitor.fail()

    stats = monitor.stats
    assert stats["total_passes"] == 2
    assert stats["total_failures"] == 1
    assert stats["failures_in_window"] == 1
    assert stats["window_seconds"] == 60


def test_invalid_settings():
    with pytest.raises(ValueError):
        Monitor(failure_threshold=0)
    with pytest.raises(ValueError):
        Monitor(failure_threshold=1, window_seconds=0)
