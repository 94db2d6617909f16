"""
Unit compilation: gateway service, job services and timers.
"""

from __future__ import annotations

from pathlib import Path

from clawkeeper.config import parse_config
from clawkeeper.supervisor import compile_units, render_unit, write_units
from clawkeeper.supervisor.units import BACKUP_UNIT, GATEWAY_UNIT, HISTORY_UNIT, gateway_environment


def _units(**doc):
    cfg = parse_config({"data_dir": "/var/lib/openclaw", **doc}, config_path="/etc/openclaw/deploy.yaml")
    return cfg, {u.name: u for u in compile_units(cfg)}


def test_default_units():
    _, units = _units()
    assert sorted(units) == [GATEWAY_UNIT, f"{HISTORY_UNIT}.service", f"{HISTORY_UNIT}.timer"]


def test_backup_units_when_enabled():
    _, units = _units(backup={"enable": True})
    svc = units[f"{BACKUP_UNIT}.service"]
    assert svc.sections["Unit"]["After"] == "network-online.target"
    assert svc.sections["Service"]["Type"] == "oneshot"
    assert svc.sections["Service"]["ExecStart"].endswith("--config /etc/openclaw/deploy.yaml backup")
    assert "PrivateNetwork" not in svc.sections["Service"]
    timer = units[f"{BACKUP_UNIT}.timer"]
    assert timer.sections["Timer"]["OnCalendar"] == "hourly"
    assert timer.sections["Timer"]["RandomizedDelaySec"] == "300"


def test_history_job_has_no_network():
    _, units = _units()
    svc = units[f"{HISTORY_UNIT}.service"].sections["Service"]
    assert svc["PrivateNetwork"] is True
    assert svc["ReadWritePaths"] == ["/var/lib/openclaw"]


def test_gateway_renders_models_on_start():
    cfg, units = _units(port=3100, models_config_path="/run/openclaw/models.json")
    svc = units[GATEWAY_UNIT].sections["Service"]
    assert svc["ExecStartPre"] == "/usr/bin/clawkeeper-ctl --config /etc/openclaw/deploy.yaml render"
    env = svc["Environment"]
    assert env["OPENCLAW_GATEWAY_PORT"] == "3100"
    assert env["OPENCLAW_MODELS_CONFIG"] == "/run/openclaw/models.json"
    assert env["OPENCLAW_STATE_DIR"] == "/var/lib/openclaw"
    assert units[GATEWAY_UNIT].sections["Install"]["WantedBy"] == "multi-user.target"


def test_gateway_environment_rocm_and_overrides():
    cfg = parse_config({
        "rocm": {"enable": True, "gfx_version": "10.3.0", "device_ids": ["0", "1"]},
        "host_config_dir": "/etc/nixos",
        "extra_environment": {"NODE_ENV": "staging"},
    })
    env = gateway_environment(cfg)
    assert env["HSA_OVERRIDE_GFX_VERSION"] == "10.3.0"
    assert env["HIP_VISIBLE_DEVICES"] == "0,1"
    assert env["OPENCLAW_HOST_CONFIG_DIR"] == "/etc/nixos"
    assert env["OPENCLAW_HOST_PROPOSALS_DIR"] == "/var/lib/openclaw/host-proposals"
    assert env["NODE_ENV"] == "staging"


def test_user_services_drop_identity_and_sandbox():
    _, units = _units(run_as_user_services=True)
    gw = units[GATEWAY_UNIT]
    assert "User" not in gw.sections["Service"]
    assert "ProtectSystem" not in gw.sections["Service"]
    assert gw.sections["Install"]["WantedBy"] == "default.target"


def test_render_repeats_list_directives():
    _, units = _units(environment_files=["/run/secrets/a.env", "/run/secrets/b.env"])
    text = render_unit(units[GATEWAY_UNIT])
    assert "SystemCallFilter=~@mount\nSystemCallFilter=~@reboot" in text
    assert "EnvironmentFile=/run/secrets/a.env\nEnvironmentFile=/run/secrets/b.env" in text
    assert 'Environment="NODE_ENV=production"' in text
    assert "ProtectHome=true" in text
    assert text.startswith("[Unit]\n")


def test_render_escapes_environment_values():
    _, units = _units(extra_environment={"GREETING": 'say "hi"'})
    assert 'Environment="GREETING=say \\"hi\\""' in render_unit(units[GATEWAY_UNIT])


def test_write_units(tmp_path: Path):
    cfg, _ = _units()
    written = write_units(compile_units(cfg), tmp_path / "units")
    assert sorted(p.name for p in written) == sorted(p.name for p in (tmp_path / "units").iterdir())


def test_clawhub_cache_dir_in_gateway_environment():
    cfg = parse_config({"data_dir": "/var/lib/openclaw", "clawhub": {"enable": True}})
    assert gateway_environment(cfg)["CLAWHUB_CACHE_DIR"] == "/var/lib/openclaw/cache/clawhub"
    assert "CLAWHUB_CACHE_DIR" not in gateway_environment(parse_config({}))
