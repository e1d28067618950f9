"""Tests for the command line entry point."""
import pytest

import main


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at temporary files and keep logging untouched."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PROFILE_PATH", str(tmp_path / "profile.json"))
    monkeypatch.setenv("LOGS_DIRECTORY", str(tmp_path / "logs"))
    monkeypatch.setattr(main, "setup_logging", lambda *args, **kwargs: None)
    return tmp_path


def test_parser_commands():
    parser = main.build_parser()
    args = parser.parse_args(["advance", "7", "rejected", "--reason", "缺少签字"])
    assert (args.command, args.record_id, args.status, args.reason, args.admin) == ("advance", "7", "rejected", "缺少签字", True)

    args = parser.parse_args(["upload", "a.png", "b.pdf", "--paid"])
    assert args.files == ["a.png", "b.pdf"]
    assert args.paid and not args.yes

    with pytest.raises(SystemExit):
        parser.parse_args(["advance", "7", "approved"])


def test_login_then_whoami(cli_env, capsys):
    argv = ["login", "--name", "李雷", "--student-id", "6230000001", "--supervisor", "韩梅梅", "--phone", "138"]
    assert main.main(argv) == 0
    assert (cli_env / "profile.json").exists()

    assert main.main(["whoami"]) == 0
    assert "6230000001" in capsys.readouterr().out


def test_commands_require_profile(cli_env, capsys):
    assert main.main(["list"]) == 1
    assert "log in first" in capsys.readouterr().out


def test_admin_flag_requires_super_admin(cli_env, capsys):
    main.main(["login", "--name", "李雷", "--student-id", "6230000001", "--supervisor", "x", "--phone", "1"])
    assert main.main(["list", "--admin"]) == 1
    assert "super admin" in capsys.readouterr().out
