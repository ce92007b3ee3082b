"""Tests for bootsource.cli module."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from bootsource import cli
from bootsource.aliases import DistroAliases
from bootsource.exceptions import DownloadError, ManagerError
from bootsource.models import BootConfig, PipelineResult


class TestRenderOutputs:
    def test_image(self):
        result = PipelineResult(boot_mode="legacy", boot=Path("/storage/boot.iso"))
        assert cli.render_outputs(result) == "BOOT=/storage/boot.iso\nBOOT_MODE=legacy\n"

    def test_device_attached(self):
        result = PipelineResult()
        result.mark_device_attached()
        assert cli.render_outputs(result) == "BOOT=none\nBOOT_MODE=''\n"

    def test_paths_are_quoted(self):
        result = PipelineResult(boot=Path("/boot dir/boot.img"))
        assert cli.render_outputs(result).splitlines()[0] == "BOOT='/boot dir/boot.img'"


class TestPublish:
    def test_stdout(self, capsys):
        cli.publish(PipelineResult(boot=Path("/storage/boot.img")), None)
        assert capsys.readouterr().out == "BOOT=/storage/boot.img\nBOOT_MODE=''\n"

    def test_file(self, tmp_path):
        output = tmp_path / "run" / "boot.env"
        cli.publish(PipelineResult(boot_mode="uefi", boot=Path("/storage/boot.qcow2")), output)
        assert output.read_text() == "BOOT=/storage/boot.qcow2\nBOOT_MODE=uefi\n"
        assert not (tmp_path / "run" / "boot.env.tmp").exists()


class TestListAliases:
    def test_lists_sorted(self, alias_config, capsys):
        cli.list_aliases(DistroAliases(alias_config))
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split()[0] == "alpine"
        assert lines[1].split()[0] == "tiny"
        assert "https://mirror.test/tiny/core.img.gz" in lines[1]

    def test_empty(self, tmp_path):
        config = tmp_path / "distros.yaml"
        config.write_text("distributions: {}\n")
        with patch("bootsource.cli.log") as mock_log:
            cli.list_aliases(DistroAliases(config))
        mock_log.assert_called_once_with("WARN", "No distributions found")


class TestShowConfig:
    def test_prints_fields(self, capsys):
        cli.show_config(BootConfig(boot="alpine", storage_dir=Path("/data")))
        out = capsys.readouterr().out
        assert "  boot: alpine" in out
        assert "  storage_dir: /data" in out
        assert "  boot_mode: <unset>" in out


class TestMain:
    def test_success_writes_output(self, tmp_path, clean_env):
        output = tmp_path / "boot.env"
        resolver = MagicMock()
        resolver.resolve.return_value = PipelineResult(boot_mode="legacy", boot=Path("/storage/boot.iso"))
        with (
            patch("bootsource.cli.BootResolver", return_value=resolver),
            patch("bootsource.cli.log") as mock_log,
        ):
            rc = cli.main(["--output", str(output)])
        assert rc == 0
        assert output.read_text() == "BOOT=/storage/boot.iso\nBOOT_MODE=legacy\n"
        mock_log.assert_called_with("SUCCESS", "Boot image ready: /storage/boot.iso")

    def test_device_attached(self, clean_env, capsys):
        result = PipelineResult()
        result.mark_device_attached()
        resolver = MagicMock()
        resolver.resolve.return_value = result
        with patch("bootsource.cli.BootResolver", return_value=resolver), patch("bootsource.cli.log"):
            assert cli.main([]) == 0
        assert capsys.readouterr().out.startswith("BOOT=none\n")

    @pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX shell")
    def test_stdout_can_be_sourced_by_a_shell(self, clean_env, capsys):
        resolver = MagicMock()
        resolver.resolve.return_value = PipelineResult(boot_mode="legacy", boot=Path("/storage/my boot.iso"))
        with patch("bootsource.cli.BootResolver", return_value=resolver):
            assert cli.main([]) == 0
        captured = capsys.readouterr()
        assert "[SUCCESS]" in captured.err
        script = captured.out + 'printf "%s|%s" "$BOOT" "$BOOT_MODE"\n'
        proc = subprocess.run(["sh", "-euc", script], capture_output=True, text=True)
        assert proc.returncode == 0, proc.stderr
        assert proc.stdout == "/storage/my boot.iso|legacy"

    def test_pipeline_error_exit_code(self, clean_env):
        resolver = MagicMock()
        resolver.resolve.side_effect = DownloadError("Giving up", exit_code=60)
        with (
            patch("bootsource.cli.BootResolver", return_value=resolver),
            patch("bootsource.cli.log") as mock_log,
        ):
            assert cli.main([]) == 60
        mock_log.assert_called_once_with("ERROR", "Giving up")

    def test_unexpected_error(self, clean_env):
        resolver = MagicMock()
        resolver.resolve.side_effect = ValueError("boom")
        with (
            patch("bootsource.cli.BootResolver", return_value=resolver),
            patch("bootsource.cli.log"),
            patch("traceback.print_exc"),
        ):
            assert cli.main([]) == 1

    def test_config_error(self, clean_env, mock_env):
        mock_env(DISK_FMT="vmdk")
        with patch("bootsource.cli.log") as mock_log, patch("bootsource.cli.BootResolver") as mock_resolver:
            assert cli.main([]) == 1
        assert "Unsupported DISK_FMT" in mock_log.call_args.args[1]
        mock_resolver.assert_not_called()

    def test_show_config(self, clean_env, mock_env, capsys):
        mock_env(BOOT="debian")
        with patch("bootsource.cli.BootResolver") as mock_resolver:
            assert cli.main(["--show-config"]) == 0
        assert "  boot: debian" in capsys.readouterr().out
        mock_resolver.assert_not_called()

    def test_list_aliases(self, clean_env, mock_env, alias_config, capsys):
        mock_env(DISTROS_CONFIG=str(alias_config))
        assert cli.main(["--list-aliases"]) == 0
        assert "Alpine Linux" in capsys.readouterr().out

    def test_list_aliases_missing_config(self, clean_env, mock_env, tmp_path):
        mock_env(DISTROS_CONFIG=str(tmp_path / "missing.yaml"))
        with patch("bootsource.cli.log") as mock_log:
            assert cli.main(["--list-aliases"]) == 34
        assert mock_log.call_args.args[0] == "ERROR"

    def test_resolver_wiring(self, clean_env, mock_env, alias_config):
        mock_env(DISTROS_CONFIG=str(alias_config))
        with patch("bootsource.cli.BootResolver") as mock_resolver, patch("bootsource.cli.log"):
            mock_resolver.return_value.resolve.side_effect = ManagerError("stop", exit_code=33)
            assert cli.main([]) == 33
        cfg = mock_resolver.call_args.args[0]
        assert cfg.alias_config == alias_config
        assert mock_resolver.call_args.kwargs["aliases"].config_path == alias_config
