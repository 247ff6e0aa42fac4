from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from conftest import PAR_NEW
from gccat import __version__
from gccat.cli import app

runner = CliRunner()


def write_log(tmp_path: Path, *lines: str) -> Path:
    path = tmp_path / "gc.log"
    path.write_text("".join(f"{line}\n" for line in lines), encoding="utf-8")
    return path


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"gccat {__version__}" in result.output


def test_clean_log_exits_zero(par_new_log: Path) -> None:
    result = runner.invoke(app, ["analyze", str(par_new_log)])
    assert result.exit_code == 0
    assert "No issues found" in result.output


def test_warnings_exit_one(par_new_log: Path) -> None:
    result = runner.invoke(app, ["analyze", str(par_new_log), "--jvm-options", "-XX:-UseBiasedLocking"])
    assert result.exit_code == 1


def test_errors_exit_two(tmp_path: Path) -> None:
    overlapping = PAR_NEW.replace("20.189", "20.200").replace("20.190", "20.201")
    result = runner.invoke(app, ["analyze", str(write_log(tmp_path, PAR_NEW, overlapping))])
    assert result.exit_code == 2


def test_reorder_option_accepted(par_new_log: Path) -> None:
    result = runner.invoke(app, ["analyze", str(par_new_log), "--reorder", "--threshold", "50"])
    assert result.exit_code == 0


def test_empty_log(tmp_path: Path) -> None:
    result = runner.invoke(app, ["analyze", str(write_log(tmp_path))])
    assert result.exit_code == 1
    assert "No GC events found" in result.output


def test_only_unidentified_lines_still_reported(tmp_path: Path) -> None:
    result = runner.invoke(app, ["analyze", str(write_log(tmp_path, "not a gc line"))])
    assert result.exit_code == 0
    assert "UNIDENTIFIED" in result.output


def test_invalid_start_datetime(par_new_log: Path) -> None:
    result = runner.invoke(app, ["analyze", str(par_new_log), "--startdatetime", "yesterday"])
    assert result.exit_code == 1
    assert "Invalid JVM start date/time" in result.output


def test_missing_file(tmp_path: Path) -> None:
    result = runner.invoke(app, ["analyze", str(tmp_path / "absent.log")])
    assert result.exit_code != 0


def test_output_file(par_new_log: Path, tmp_path: Path) -> None:
    output = tmp_path / "report.txt"
    result = runner.invoke(app, ["analyze", str(par_new_log), "--output", str(output)])
    assert result.exit_code == 0
    assert output.exists()
    assert "Summary" in output.read_text(encoding="utf-8")


def test_preprocessed_output(tmp_path: Path) -> None:
    log = write_log(
        tmp_path,
        "251.781: [CMS-concurrent-mark-start]",
        "252.415: [CMS-concurrent-mark: 0.612/0.634 secs]",
    )
    canonical = tmp_path / "canonical.log"
    result = runner.invoke(app, ["analyze", str(log), "--preprocessed-output", str(canonical)])
    assert result.exit_code == 0
    assert canonical.read_text(encoding="utf-8") == (
        "251.781: [CMS-concurrent-mark-start] 252.415: [CMS-concurrent-mark: 0.612/0.634 secs]\n"
    )
