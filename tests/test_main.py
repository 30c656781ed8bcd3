import logging

import pytest

from phoenix_provisioner import __version__, main
from phoenix_provisioner.errors import CommandError, ConfigError
from phoenix_provisioner.pipeline import PipelineResult
from phoenix_provisioner.session import Phase, Session


@pytest.fixture
def as_root(monkeypatch):
    monkeypatch.setattr(main.os, "geteuid", lambda: 0)
    monkeypatch.setattr(main, "configure_logging", lambda **kwargs: kwargs.get("log_path"))


def _result(error=None, step=None):
    phase = Phase.ABORTED if error else Phase.COMPLETE
    return PipelineResult(session=Session(phase=phase), ran_steps=[], failed_step=step, error=error)


def test_version(capsys):
    assert main.main(["version"]) == 0
    assert capsys.readouterr().out.strip() == f"Fedora Phoenix {__version__}"


def test_secrets_flag_is_required(capsys):
    with pytest.raises(SystemExit) as exc:
        main.main(["provision"])
    assert exc.value.code == 2


def test_refuses_to_run_without_root(monkeypatch, capsys):
    monkeypatch.setattr(main.os, "geteuid", lambda: 1000)

    assert main.main(["provision", "--secrets", "s.yml"]) == 2
    assert "must be run as root" in capsys.readouterr().err


def test_exit_code_follows_error_kind(monkeypatch, as_root, capsys):
    err = CommandError(["cryptsetup", "open", "/dev/sda2", "data", "--type", "luks"], 2, "No key available")
    monkeypatch.setattr(main, "run_provision", lambda **kwargs: _result(err, "30_infrastructure"))

    assert main.main(["provision", "--secrets", "s.yml"]) == 3
    out = capsys.readouterr().err
    assert "Aborted in step 30_infrastructure" in out
    assert "No key available" in out


def test_config_error_exit_code(monkeypatch, as_root):
    monkeypatch.setattr(main, "run_provision", lambda **kwargs: _result(ConfigError("bad"), "20_load_config"))
    assert main.main(["provision", "--secrets", "s.yml"]) == 2


def test_success(monkeypatch, as_root, tmp_path):
    seen = {}

    def fake_run(**kwargs):
        seen.update(kwargs)
        return _result()

    archive = tmp_path / "dotfiles.tgz"
    archive.write_bytes(b"")
    monkeypatch.setattr(main, "run_provision", fake_run)

    assert main.main(["provision", "-s", "s.yml", "-d", str(archive)]) == 0
    assert seen["dotfiles_archive"] == str(archive)
    assert callable(seen["loader"])


def test_missing_archive_is_rejected(monkeypatch, as_root, tmp_path):
    monkeypatch.setattr(main, "run_provision", lambda **kwargs: pytest.fail("should not run"))
    assert main.main(["provision", "-s", "s.yml", "-d", str(tmp_path / "nope.tgz")]) == 2


@pytest.mark.parametrize("flags, file_level", [([], logging.INFO), (["--verbose"], logging.DEBUG)])
def test_verbose_only_raises_the_file_log(monkeypatch, flags, file_level):
    seen = {}
    monkeypatch.setattr(main.os, "geteuid", lambda: 0)
    monkeypatch.setattr(main, "configure_logging", lambda **kwargs: seen.update(kwargs))
    monkeypatch.setattr(main, "run_provision", lambda **kwargs: _result())

    assert main.main(["provision", "--secrets", "s.yml", *flags]) == 0
    assert seen["file_level"] == file_level
    assert "console_level" not in seen
