import io
import sys

import pytest
from rich.console import Console

from foldmux.cli import CONFIG_ERROR_STATUS, RENDER_ERROR_STATUS, forced_exit, run
from foldmux.config import Settings, parse_settings


def test_flags_become_settings():
    settings = parse_settings(
        ["-s", "A(.*)", "-e", "B(.*)", "-x", "3", "-D", "20", "--min-refresh", "10",
         "-r", "make", "-j8", "-/-", "ls"]
    )
    assert settings.match_begin == ["A(.*)"]
    assert settings.match_end == ["B(.*)"]
    assert settings.final_shrink == 3
    assert settings.interline_delay == 0.02
    assert settings.min_refresh == 0.01
    assert settings.replay and not settings.debug
    assert settings.programs == [["make", "-j8"], ["ls"]]


def test_defaults():
    settings = parse_settings([])
    assert settings.programs == []
    assert settings.final_shrink == 2
    assert settings.interline_delay == 0
    assert settings.min_refresh == 0.004


def test_environment_supplies_shell_and_log_level(monkeypatch):
    monkeypatch.setenv("FOLDMUX_SHELL", "/bin/bash")
    monkeypatch.setenv("FOLDMUX_LOG_LEVEL", "info")
    settings = parse_settings([])
    assert settings.shell == "/bin/bash"
    assert settings.log_level == "INFO"
    assert parse_settings(["-v"]).log_level == "DEBUG"


def test_unknown_log_level_falls_back(monkeypatch):
    monkeypatch.setenv("FOLDMUX_LOG_LEVEL", "chatty")
    assert parse_settings([]).log_level == "WARNING"


def test_config_errors_exit_before_running(capsys):
    settings = Settings(match_begin=["(a)", "(b)"], match_end=["(c)"])
    assert run(settings) == CONFIG_ERROR_STATUS
    assert "don't match" in capsys.readouterr().err


def test_pattern_without_group_is_reported(capsys):
    settings = Settings(match_begin=["BEGIN"], match_end=["END"])
    assert run(settings) == CONFIG_ERROR_STATUS
    assert "No capture group" in capsys.readouterr().err


def test_debug_run_prints_structure_of_each_program():
    script = "print('BEGIN(build)'); print('compiling'); print('END(ok)'); print('done')"
    settings = Settings(
        programs=[[sys.executable, "-c", script]],
        match_begin=[r"BEGIN\((.*)\)"],
        match_end=[r"END\((.*)\)"],
        debug=True,
    )
    console = Console(file=io.StringIO(), width=40, height=10)
    assert run(settings, console) == 0
    assert console.file.getvalue().splitlines() == [
        "StartLine: BEGIN(build)",
        "StartTitle: build",
        "    Line: compiling",
        "EndLine: 'END(ok)'",
        "EndTitle: 'ok'",
        "Line: done",
    ]


def test_run_draws_frames_then_replays():
    script = "print('hello'); print('world')"
    settings = Settings(programs=[[sys.executable, "-c", script]], replay=True)
    console = Console(file=io.StringIO(), force_terminal=True, width=40, height=10)
    assert run(settings, console) == 0
    out = console.file.getvalue()
    assert "\x1b[?1049h" in out and "\x1b[?1049l" in out
    assert out.endswith("hello\nworld\n")


def test_output_that_is_not_a_terminal_stops_before_any_program_starts(tmp_path, capsys):
    marker = tmp_path / "started"
    script = f"open({str(marker)!r}, 'w').close()"
    settings = Settings(programs=[[sys.executable, "-c", script]])
    console = Console(file=io.StringIO(), width=40, height=10)
    assert run(settings, console) == RENDER_ERROR_STATUS
    assert "not a terminal" in capsys.readouterr().err
    assert not marker.exists()
    assert console.file.getvalue() == ""


def test_forced_exit_leaves_the_alternate_screen(monkeypatch):
    statuses = []

    def fake_exit(status):
        statuses.append(status)
        raise SystemExit(status)

    monkeypatch.setattr("foldmux.cli.os._exit", fake_exit)
    console = Console(file=io.StringIO(), force_terminal=True, width=40, height=10)
    console.set_alt_screen(True)
    with pytest.raises(SystemExit):
        forced_exit(console)
    out = console.file.getvalue()
    assert out.index("\x1b[?1049l") > out.index("\x1b[?1049h")
    assert "\x1b[?25h" in out
    assert statuses == [130]
