"""Tests for SLA policy loading and hot reload."""

from datetime import timedelta

import pytest

from servicedesk.core import ConfigurationException
from servicedesk.sla.infrastructure import SLAPolicyManager


@pytest.fixture
def policy_file(tmp_path):
    path = tmp_path / "sla_config.yaml"
    path.write_text(
        "resolution_hours:\n"
        "  critical: 2\n"
        "  high: 6\n"
        "due_soon_hours: 4\n"
    )
    return path


class TestSLAPolicyManager:
    """Test cases for SLAPolicyManager."""

    def test_load_from_file(self, policy_file):
        manager = SLAPolicyManager()

        policy = manager.load(policy_file)

        assert policy.duration("critical") == timedelta(hours=2)
        assert policy.duration("medium") == timedelta(hours=24)
        assert policy.due_soon_hours == 4
        assert manager.get_policy() is policy

    def test_missing_file_uses_defaults(self, tmp_path):
        manager = SLAPolicyManager()

        policy = manager.load(tmp_path / "absent.yaml")

        assert policy.duration("critical") == timedelta(hours=4)

    def test_invalid_initial_load(self, tmp_path):
        path = tmp_path / "sla_config.yaml"
        path.write_text("resolution_hours:\n  high: -1\n")

        with pytest.raises(ConfigurationException):
            SLAPolicyManager().load(path)

    def test_reload_picks_up_changes(self, policy_file):
        manager = SLAPolicyManager()
        manager.load(policy_file)
        policy_file.write_text("resolution_hours:\n  critical: 1\n")

        assert manager.reload() is True
        assert manager.get_policy().duration("critical") == timedelta(hours=1)

    def test_broken_reload_keeps_previous_policy(self, policy_file):
        manager = SLAPolicyManager()
        manager.load(policy_file)
        policy_file.write_text("resolution_hours: [not, a, mapping\n")

        assert manager.reload() is False
        assert manager.get_policy().duration("critical") == timedelta(hours=2)

    def test_reload_before_load(self):
        assert SLAPolicyManager().reload() is False

    def test_get_policy_before_load(self):
        with pytest.raises(RuntimeError):
            SLAPolicyManager().get_policy()

    def test_watching_lifecycle(self, policy_file):
        manager = SLAPolicyManager()
        manager.load(policy_file)

        manager.start_watching()
        try:
            assert manager.is_watching is True
        finally:
            manager.stop_watching()

        assert manager.is_watching is False

    def test_watch_requires_load(self):
        with pytest.raises(RuntimeError):
            SLAPolicyManager().start_watching()
