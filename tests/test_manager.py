import os

import pytest

import jooce_manager
from conftest import make_asset
from jooce_lib.errors import BatchSizeMismatchError
from jooce_lib.models import RawWeight
from jooce_lib.normalize import LARGEST_REMAINDER, calculate_allocations


@pytest.fixture
def env_file(monkeypatch, tmp_path):
    monkeypatch.setenv("OUTPUT_DIR", str(tmp_path / "out"))
    path = tmp_path / ".env"
    path.write_text("")
    return str(path)


def fake_compute(calls):
    def run_compute(settings, policy, progress=True):
        calls.append(policy)
        assets = [make_asset(i, symbol=f"T{i}", raw_weight=RawWeight(n, 10)) for i, n in enumerate([6, 4])]
        return calculate_allocations(assets, settings, policy=policy)
    return run_compute


def test_compute_saves_table(monkeypatch, env_file, tmp_path, capsys):
    calls = []
    monkeypatch.setattr(jooce_manager.pipeline, "run_compute", fake_compute(calls))

    assert jooce_manager.main(["--env-file", env_file, "compute", "--policy", LARGEST_REMAINDER]) == 0

    assert calls == [LARGEST_REMAINDER]
    assert os.path.exists(tmp_path / "out" / "allocation_table.json")
    assert "JOOCE" in capsys.readouterr().out


def test_compute_no_save(monkeypatch, env_file, tmp_path):
    monkeypatch.setattr(jooce_manager.pipeline, "run_compute", fake_compute([]))
    assert jooce_manager.main(["--env-file", env_file, "compute", "--no-save"]) == 0
    assert not os.path.exists(tmp_path / "out")


def test_fatal_error_writes_nothing(monkeypatch, env_file, tmp_path):
    def boom(settings, policy, progress=True):
        raise BatchSizeMismatchError(1, 3, 2)
    monkeypatch.setattr(jooce_manager.pipeline, "run_compute", boom)

    assert jooce_manager.main(["--env-file", env_file, "compute"]) == 1
    assert not os.path.exists(tmp_path / "out")


def test_show_prints_saved_table(monkeypatch, env_file, capsys):
    monkeypatch.setattr(jooce_manager.pipeline, "run_compute", fake_compute([]))
    jooce_manager.main(["--env-file", env_file, "compute"])
    capsys.readouterr()

    assert jooce_manager.main(["--env-file", env_file, "show"]) == 0
    out = capsys.readouterr().out
    assert "T0" in out and "Checks" in out


def test_show_missing_file(env_file):
    assert jooce_manager.main(["--env-file", env_file, "show", "--path", "/nonexistent.json"]) == 1


def test_no_command_prints_help(capsys):
    assert jooce_manager.main([]) == 0
    assert "compute" in capsys.readouterr().out
