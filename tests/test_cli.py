from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

import handlerbus.cli


def _combined_output(result) -> str:
    try:
        return result.stdout + result.stderr
    except ValueError:
        return result.stdout


def _write_handler_module(path) -> None:
    (path / "sample_handlers.py").write_text(
        "\n".join(
            [
                "from handlerbus import EventHandler, handles",
                "",
                "",
                "class StreamController(EventHandler):",
                "    def onFragLoaded(self, data):",
                "        pass",
                "",
                "    @handles('hlsLevelSwitched')",
                "    def switch_level(self, data):",
                "        pass",
                "",
            ]
        ),
        encoding="utf-8",
    )


def test_resolve_prints_derived_methods(isolated_env):
    runner = CliRunner()
    result = runner.invoke(handlerbus.cli.app, ["resolve", "hlsFragLoaded", "hlsLevelLoaded"])

    assert result.exit_code == 0
    assert "hlsFragLoaded -> onFragLoaded [-]" in result.stdout
    assert "hlsLevelLoaded -> onLevelLoaded [-]" in result.stdout


def test_resolve_with_custom_prefix_as_json(isolated_env):
    runner = CliRunner()
    result = runner.invoke(handlerbus.cli.app, ["resolve", "xFooBar", "--prefix", "x", "--format", "json"])

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [
        {"event": "xFooBar", "method": "onFooBar", "reserved": False, "resolved": None}
    ]


def test_resolve_flags_reserved_names(isolated_env):
    runner = CliRunner()
    result = runner.invoke(handlerbus.cli.app, ["resolve", "hlsHandlerDestroying"])

    assert result.exit_code == 1
    assert "[reserved]" in result.stdout


def test_resolve_against_handler_class(isolated_env, tmp_path, monkeypatch):
    _write_handler_module(tmp_path)
    monkeypatch.syspath_prepend(str(tmp_path))
    runner = CliRunner()

    ok = runner.invoke(
        handlerbus.cli.app,
        ["resolve", "hlsFragLoaded", "hlsLevelSwitched", "--handler", "sample_handlers:StreamController"],
    )
    assert ok.exit_code == 0
    assert "hlsFragLoaded -> onFragLoaded [ok]" in ok.stdout
    assert "hlsLevelSwitched -> switch_level [ok]" in ok.stdout

    missing = runner.invoke(
        handlerbus.cli.app,
        ["resolve", "hlsKeyLoaded", "--handler", "sample_handlers:StreamController"],
    )
    assert missing.exit_code == 1
    assert "hlsKeyLoaded -> onKeyLoaded [missing]" in missing.stdout


def test_resolve_rejects_bad_handler_spec(isolated_env):
    runner = CliRunner()
    result = runner.invoke(handlerbus.cli.app, ["resolve", "hlsFragLoaded", "--handler", "no_colon_here"])

    assert result.exit_code == 2
    assert "Cannot load handler" in _combined_output(result)


def test_resolve_reports_conflicting_handler_class(isolated_env, tmp_path, monkeypatch):
    (tmp_path / "conflicting_handlers.py").write_text(
        "\n".join(
            [
                "from handlerbus import EventHandler, handles",
                "",
                "",
                "class Conflicting(EventHandler):",
                "    @handles('hlsFragLoaded')",
                "    def first(self, data):",
                "        pass",
                "",
                "    @handles('hlsFragLoaded')",
                "    def second(self, data):",
                "        pass",
                "",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    runner = CliRunner()

    result = runner.invoke(
        handlerbus.cli.app,
        ["resolve", "hlsFragLoaded", "--handler", "conflicting_handlers:Conflicting"],
    )

    assert result.exit_code == 2
    output = _combined_output(result)
    assert "Error:" in output
    assert "Invalid handler" in output
    assert "first" in output and "second" in output


def test_init_then_doctor_json(isolated_env):
    runner = CliRunner()
    init = runner.invoke(handlerbus.cli.app, ["init"])
    assert init.exit_code == 0
    assert "Initialized project config" in init.stdout

    again = runner.invoke(handlerbus.cli.app, ["init"])
    assert again.exit_code == 2

    result = runner.invoke(handlerbus.cli.app, ["doctor"])
    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["event_prefix"] == "hls"
    assert report["error_event"] == "hlsError"
    assert report["reserved_event_names"] == [
        "hlsEventGeneric",
        "hlsHandlerDestroyed",
        "hlsHandlerDestroying",
    ]
    assert report["config_file"].endswith("config.toml")
    assert report["logs_enabled"] is False


def test_doctor_text_without_config(isolated_env):
    runner = CliRunner()
    result = runner.invoke(handlerbus.cli.app, ["doctor", "--format", "text"])

    assert result.exit_code == 0
    assert "Doctor Report" in result.stdout
    assert "config_file=(defaults)" in result.stdout
    assert "event_prefix=hls" in result.stdout


def test_doctor_rejects_unknown_format(isolated_env):
    runner = CliRunner()
    result = runner.invoke(handlerbus.cli.app, ["doctor", "--format", "yaml"])

    assert result.exit_code == 2
    assert "Unsupported format" in _combined_output(result)


def test_console_script_entrypoint_runs_the_app(isolated_env, monkeypatch, capsys):
    monkeypatch.setattr("sys.argv", ["handlerbus", "resolve", "hlsFragLoaded"])

    with pytest.raises(SystemExit) as excinfo:
        handlerbus.cli.main()

    assert excinfo.value.code == 0
    assert "hlsFragLoaded -> onFragLoaded [-]" in capsys.readouterr().out
