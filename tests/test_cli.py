import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from irule import irule_cli

VALID_RULE = """when HTTP_REQUEST {
    if { [HTTP::uri] starts_with "/api" } {
        pool api_pool
    }
}
"""


def test_run_validator_string_valid() -> None:
    assert irule_cli.run_validator("set x 5", is_string=True) == 0


def test_run_validator_string_invalid_prints(capsys: pytest.CaptureFixture[str]) -> None:
    code = irule_cli.run_validator("if {1 + 1 == 2} {", is_string=True, print_errors=True)
    assert code == 1
    out = capsys.readouterr().out
    assert "missing closing brace for block opened on line 1" in out
    assert "Unbalanced braces: depth at end of parsing is 1" in out


def test_run_validator_quiet_by_default(capsys: pytest.CaptureFixture[str]) -> None:
    assert irule_cli.run_validator("set x", is_string=True) == 1
    assert capsys.readouterr().out == ""


def test_run_validator_file(irule_file: Callable[[str], Path]) -> None:
    path = irule_file(VALID_RULE)
    assert irule_cli.run_validator(str(path)) == 0


def test_run_validator_file_with_errors(
    irule_file: Callable[[str], Path], capsys: pytest.CaptureFixture[str]
) -> None:
    path = irule_file("when BOGUS_EVENT { }\n")
    assert irule_cli.run_validator(str(path), print_errors=True) == 1
    assert "Invalid event 'BOGUS_EVENT' for when (line 1)" in capsys.readouterr().out


def test_run_validator_missing_file(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    missing = tmp_path / "nope.irule"
    assert irule_cli.run_validator(str(missing)) == 1
    assert "Error reading file" in capsys.readouterr().err


def test_run_validator_strict() -> None:
    source = "log local0. $user"
    assert irule_cli.run_validator(source, is_string=True) == 0
    assert irule_cli.run_validator(source, is_string=True, strict_variables=True) == 1


def test_main_string_source(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "argv", ["irule-validator", "-s", "set x 5"])
    with pytest.raises(SystemExit) as e:
        irule_cli.main()
    assert e.value.code == 0


def test_main_file_with_errors(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    irule_file: Callable[[str], Path],
) -> None:
    path = irule_file('set 123invalid "value"\n')
    monkeypatch.setattr(sys, "argv", ["irule-validator", "-p", str(path)])
    with pytest.raises(SystemExit) as e:
        irule_cli.main()
    assert e.value.code == 1
    assert "Invalid variable name '123invalid'" in capsys.readouterr().out


def test_main_strict_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        sys, "argv", ["irule-validator", "--strict", "-s", "log local0. $user"]
    )
    with pytest.raises(SystemExit) as e:
        irule_cli.main()
    assert e.value.code == 1


def test_main_debug_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "argv", ["irule-validator", "-d", "-s", "set x 5"])
    with pytest.raises(SystemExit) as e:
        irule_cli.main()
    assert e.value.code == 0


def test_main_version(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(sys, "argv", ["irule-validator", "--version"])
    with pytest.raises(SystemExit) as e:
        irule_cli.main()
    assert e.value.code == 0
    assert capsys.readouterr().out.startswith("irule-validator ")


def test_main_without_source_starts_repl(monkeypatch: pytest.MonkeyPatch) -> None:
    called: dict[str, Any] = {}
    monkeypatch.setattr(sys, "argv", ["irule-validator"])
    monkeypatch.setattr(
        "irule.irule_repl.start_repl", lambda **kwargs: called.update(kwargs)
    )
    irule_cli.main()
    assert called == {"debug": False}


def test_package_version_is_a_string() -> None:
    assert isinstance(irule_cli.package_version(), str)


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])  # type: ignore[misc]
@given(st.text(max_size=80))  # type: ignore[misc]
def test_run_validator_exit_code_matches_diagnostics(
    capsys: pytest.CaptureFixture[str], source: str
) -> None:
    code = irule_cli.run_validator(source, is_string=True, print_errors=True)
    out = capsys.readouterr().out
    assert code in (0, 1)
    assert (code == 0) == (out == "")
