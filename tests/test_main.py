"""Tests for the command line entry point."""

import io

from tater.main import main


def _config(tmp_path, fake_git, fake_cargo):
    path = tmp_path / "config.yaml"
    path.write_text(f"git: {fake_git}\ncargo: {fake_cargo}\n")
    return path


def test_main_reads_stdin(tmp_path, fake_git, fake_cargo, monkeypatch):
    config = _config(tmp_path, fake_git, fake_cargo)
    output = tmp_path / "out"
    monkeypatch.setattr(
        "sys.stdin", io.StringIO("https://example.test/org/sample-project.git\n")
    )

    code = main(["--config", str(config), "--output", str(output), "--toolchain", "nightly"])

    assert code == 0
    results = output / "results" / "sample-project"
    assert (results / "tarpaulin-run.json").exists()
    log = (results / "sample-project.log").read_text()
    assert "+nightly tarpaulin" in log
    assert not (output / "projects" / "sample-project").exists()
    assert (output / "summary.json").exists()


def test_main_exit_status_ignores_repo_failures(tmp_path, fake_git, fake_cargo):
    config = _config(tmp_path, fake_git, fake_cargo)
    repos = tmp_path / "repos.txt"
    repos.write_text("https://example.test/org/missing.git\nhttps://example.test/org/broken.git\n")

    code = main(["-c", str(config), "-i", str(repos), "-o", str(tmp_path / "out")])

    assert code == 0
    assert (tmp_path / "out" / "fail").read_text().split() == ["missing", "broken"]


def test_main_repos_file_overrides(tmp_path, fake_git, fake_cargo):
    config = _config(tmp_path, fake_git, fake_cargo)
    repos = tmp_path / "repos.yaml"
    repos.write_text(
        "toolchain: stable\n"
        "crates:\n"
        "  - repository_url: https://example.test/org/crate.git\n"
        "    env: {EXTRA: from-repo}\n"
    )

    code = main([
        "-c", str(config), "-i", str(repos), "-o", str(tmp_path / "out"),
        "--no-all-features", "--color", "auto",
    ])

    assert code == 0
    log = (tmp_path / "out" / "results" / "crate" / "crate.log").read_text()
    assert "cargo +stable tarpaulin --debug --color auto\n" in log
    assert "EXTRA=from-repo" in log


def test_main_missing_config(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "nope.yaml")]) == 1
    assert "Config file not found" in capsys.readouterr().out


def test_main_output_is_a_file(tmp_path, fake_git, fake_cargo):
    config = _config(tmp_path, fake_git, fake_cargo)
    repos = tmp_path / "repos.txt"
    repos.write_text("https://example.test/org/a.git\n")
    output = tmp_path / "file"
    output.write_text("")

    assert main(["-c", str(config), "-i", str(repos), "-o", str(output)]) == 1


def test_main_unquoted_toolchain_in_config(tmp_path, capsys):
    config = tmp_path / "config.yaml"
    config.write_text("toolchain: 1.70\n")

    assert main(["--config", str(config)]) == 1
    assert "toolchain" in capsys.readouterr().out


def test_main_bad_hook_in_repos_file(tmp_path, fake_git, fake_cargo, capsys):
    config = _config(tmp_path, fake_git, fake_cargo)
    repos = tmp_path / "repos.yaml"
    repos.write_text(
        "crates:\n"
        "  - repository_url: https://example.test/org/a.git\n"
        "    setup: 123\n"
        "  - https://example.test/org/b.git\n"
    )

    assert main(["-c", str(config), "-i", str(repos), "-o", str(tmp_path / "out")]) == 1
    assert "setup must be a shell command" in capsys.readouterr().out


def test_main_negative_timeout(tmp_path, capsys):
    assert main(["--timeout", "-1"]) == 1
    assert "--timeout" in capsys.readouterr().out
