"""Unit tests for the CLI entry point and daemon wiring (src/wabridge/cli)."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml

from src.wabridge.cli import main as cli_main
from src.wabridge.cli.daemon import BridgeDaemon
from src.wabridge.core.models import PermissionMode
from src.wabridge.infra.config import BridgeConfig, get_config, reset_config_cache


@pytest.fixture(autouse=True)
def _reset_cache():
    reset_config_cache()
    yield
    reset_config_cache()


# ===========================================================================
# Argument parsing
# ===========================================================================

class TestParser:
    def test_start_options(self):
        args = cli_main.build_parser().parse_args([
            "--config", "/tmp/c.yaml", "start",
            "-w", "15551234567", "--mode", "plan", "--model", "opus",
            "--agent-name", "Storm", "--no-process-missed", "--missed-threshold", "15", "-v",
        ])
        options = cli_main._cli_options(args)
        assert args.config == "/tmp/c.yaml"
        assert options["whitelist"] == "15551234567"
        assert options["mode"] == "plan"
        assert options["model"] == "opus"
        assert options["agent_name"] == "Storm"
        assert options["process_missed"] is False
        assert options["missed_threshold_mins"] == 15
        assert options["verbose"] is True

    def test_unset_flags_stay_none(self):
        args = cli_main.build_parser().parse_args(["start"])
        options = cli_main._cli_options(args)
        assert options["process_missed"] is None
        assert options["verbose"] is None
        assert options["allow_all_group_participants"] is None

    def test_max_turns_flag_is_not_accepted(self):
        with pytest.raises(SystemExit):
            cli_main.build_parser().parse_args(["start", "--max-turns", "5"])
        assert not hasattr(BridgeConfig(whitelist=["1"]), "max_turns")


class TestCommands:
    def test_start_with_invalid_config_exits(self, tmp_path, capsys):
        args = cli_main.build_parser().parse_args(
            ["--config", str(tmp_path / "none.yaml"), "start", "--mode", "wild"]
        )
        with pytest.raises(SystemExit) as exc_info:
            cli_main.cmd_start(args)
        assert exc_info.value.code == 2
        assert "Configuration validation failed" in capsys.readouterr().err

    def test_start_runs_daemon(self, tmp_path):
        args = cli_main.build_parser().parse_args(
            ["--config", str(tmp_path / "none.yaml"), "start", "-w", "111", "-d", str(tmp_path)]
        )
        with patch.object(cli_main, "BridgeDaemon") as daemon_cls, \
                patch.object(cli_main.asyncio, "run") as run:
            cli_main.cmd_start(args)
        config = daemon_cls.call_args.args[0]
        assert config.whitelist == ["111"]
        assert config.directory == str(tmp_path.resolve())
        run.assert_called_once()

    def test_config_init_then_show(self, tmp_path, capsys):
        path = str(tmp_path / "config.yaml")
        cli_main.cmd_config(cli_main.build_parser().parse_args(["--config", path, "config", "--init"]))
        capsys.readouterr()
        cli_main.cmd_config(cli_main.build_parser().parse_args(["--config", path, "config", "--show"]))
        shown = yaml.safe_load(capsys.readouterr().out)
        assert shown["wabridge"]["mode"] == "normal"

    def test_start_reads_config_through_cache(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"wabridge": {"whitelist": ["111"], "model": "haiku"}}), encoding="utf-8")
        args = cli_main.build_parser().parse_args(["--config", str(path), "start"])
        with patch.object(cli_main, "get_config", wraps=get_config) as cached, \
                patch.object(cli_main, "BridgeDaemon") as daemon_cls, \
                patch.object(cli_main.asyncio, "run"):
            cli_main.cmd_start(args)
        cached.assert_called_once_with(str(path))
        assert daemon_cls.call_args.args[0].model == "claude-haiku-4-5-20251001"
        assert get_config(str(path))["wabridge"]["model"] == "haiku"

    def test_config_show_refreshes_cache(self, tmp_path, capsys):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"wabridge": {"model": "opus"}}), encoding="utf-8")
        stale = get_config(str(path))
        path.write_text(yaml.safe_dump({"wabridge": {"model": "haiku"}}), encoding="utf-8")

        cli_main.cmd_config(cli_main.build_parser().parse_args(["--config", str(path), "config", "--show"]))
        assert yaml.safe_load(capsys.readouterr().out)["wabridge"]["model"] == "haiku"
        assert get_config(str(path)) is not stale
        assert get_config(str(path))["wabridge"]["model"] == "haiku"

    def test_config_init_drops_cached_copy(self, tmp_path):
        path = str(tmp_path / "config.yaml")
        stale = get_config(path)
        cli_main.cmd_config(cli_main.build_parser().parse_args(["--config", path, "config", "--init"]))
        assert get_config(path) is not stale

    def test_main_without_command_prints_help(self, capsys):
        with patch("sys.argv", ["wabridge"]):
            cli_main.main()
        assert "usage" in capsys.readouterr().out.lower()


# ===========================================================================
# BridgeDaemon
# ===========================================================================

def _daemon(tmp_path, **kwargs):
    config = BridgeConfig(whitelist=["15551234567"], directory=str(tmp_path), agent_name="Storm", **kwargs)
    backend = MagicMock()
    backend.stop = AsyncMock()
    channel = MagicMock()
    channel.stop = AsyncMock()
    return BridgeDaemon(config, backend=backend, channel=channel)


class TestBridgeDaemon:
    def test_wires_components(self, tmp_path):
        daemon = _daemon(tmp_path, mode=PermissionMode.PLAN)
        assert daemon.identity.name == "Storm"
        assert daemon.identity.folder == tmp_path.name
        daemon.channel.on_message.assert_called_once_with(daemon.core.handle_message)
        daemon.backend.set_mode.assert_called_with(PermissionMode.PLAN)
        assert daemon.app.state.core is daemon.core

    def test_group_join_switches_policy(self, tmp_path):
        daemon = _daemon(tmp_path)
        listener = daemon.channel.on_group_joined.call_args.args[0]
        listener("120363@g.us")
        assert daemon.access_policy.group_mode
        assert daemon.access_policy.group_address == "120363@g.us"

    def test_default_backend_uses_env_api_key(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
        config = BridgeConfig(whitelist=["1"], directory=str(tmp_path))
        daemon = BridgeDaemon(config, channel=MagicMock())
        assert daemon.backend._api_key == "sk-env"
        assert daemon.backend.model == config.model

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, tmp_path):
        daemon = _daemon(tmp_path)
        await daemon.stop()
        await daemon.stop()
        daemon.channel.stop.assert_awaited_once()
        daemon.backend.stop.assert_awaited_once()
