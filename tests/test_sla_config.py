"""SLA target file loading and hot reload."""

from datetime import timedelta
from pathlib import Path

from ticketflow.sla.domain import SLAConfig
from ticketflow.sla.infrastructure.external import SLAConfigManager

BUNDLED_CONFIG = Path(__file__).resolve().parent.parent / "sla_config.yaml"


def test_bundled_config_loads():
    manager = SLAConfigManager()
    manager.load(BUNDLED_CONFIG)
    assert manager.get_definition("task", "low").target == timedelta(minutes=4320)


def test_missing_file_falls_back_to_defaults(tmp_path):
    manager = SLAConfigManager()
    manager.load(tmp_path / "absent.yaml")
    assert manager.compute_due_time("incident", "critical") == timedelta(minutes=240)


def test_reload_swaps_config(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text("sla_targets:\n  high: 120\n")
    manager = SLAConfigManager()
    manager.load(path)
    assert manager.compute_due_time("incident", "high") == timedelta(hours=2)

    path.write_text("sla_targets:\n  high: 30\nticket_type_targets:\n  incident:\n    high: 15\n")
    assert manager.reload()
    assert manager.compute_due_time("incident", "high") == timedelta(minutes=15)
    assert manager.compute_due_time("bug", "high") == timedelta(minutes=30)


def test_bad_reload_keeps_previous_config(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text("sla_targets:\n  high: 120\n")
    manager = SLAConfigManager()
    manager.load(path)

    path.write_text("sla_targets:\n  high: -5\n")
    assert not manager.reload()
    assert manager.compute_due_time("incident", "high") == timedelta(hours=2)


def test_tenant_override_wins(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text(
        "sla_targets:\n  high: 480\n"
        "tenant_overrides:\n  tenant-1:\n    incident:\n      high: 60\n"
    )
    manager = SLAConfigManager()
    manager.load(path)
    assert manager.get_definition("incident", "high", "tenant-1").target == timedelta(hours=1)
    assert manager.get_definition("incident", "high", "tenant-2").target == timedelta(hours=8)


def test_file_without_priority_defaults_still_gets_them(tmp_path):
    path = tmp_path / "sla.yaml"
    path.write_text("ticket_type_targets:\n  incident:\n    low: 600\n")
    manager = SLAConfigManager()
    manager.load(path)

    assert manager.compute_due_time("task", "critical") == timedelta(minutes=240)
    assert manager.compute_due_time("incident", "low") == timedelta(minutes=600)


def test_bare_config_has_every_priority():
    assert SLAConfig().sla_targets == {"critical": 240, "high": 480, "medium": 1440, "low": 4320}
