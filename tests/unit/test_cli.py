"""Tests for the command-line interface."""

from pathlib import Path

import pytest

from main import _schedule_changes, main, parse_args


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(
        f"database:\n  path: {tmp_path / 'leads.db'}\n"
        "scheduler:\n  timezone: UTC\n"
        "quotas:\n  serpapi:\n    max_searches_per_day: 50\n    max_leads_per_day: 200\n"
    )
    return path


class TestParseArgs:
    def test_defaults_to_search(self) -> None:
        args = parse_args([])
        assert args.command == "search"
        assert args.config == "config/settings.yaml"
        assert args.dry_run is False
        assert args.export is None

    def test_top_level_flags(self) -> None:
        args = parse_args(["--dry-run", "--config", "other.yaml"])
        assert (args.command, args.dry_run, args.config) == ("search", True, "other.yaml")

    def test_search_flags_after_subcommand(self) -> None:
        args = parse_args(["search", "--dry-run", "--export", "json", "-v"])
        assert args.dry_run is True
        assert args.export == "json"
        assert args.verbose is True

    def test_top_level_flag_survives_subcommand(self) -> None:
        args = parse_args(["--dry-run", "--config", "a.yaml", "search"])
        assert args.dry_run is True
        assert args.config == "a.yaml"

    def test_schedule_add(self) -> None:
        args = parse_args([
            "schedule", "add", "--name", "Wed coffee", "--frequency", "weekly",
            "--hour", "9", "--minute", "30", "--day-of-week", "3",
            "-k", "coffee shops", "-k", "tea", "--no-require-images", "--pages", "2",
        ])
        assert (args.command, args.schedule_command) == ("schedule", "add")
        fields, search = _schedule_changes(args)
        assert fields == {
            "name": "Wed coffee", "frequency": "weekly", "hour": 9, "minute": 30,
            "day_of_week": 3,
        }
        assert search == {"keywords": ["coffee shops", "tea"], "pages": 2, "require_images": False}

    def test_schedule_add_requires_timing(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["schedule", "add", "--name", "x"])

    def test_schedule_update_only_given_fields(self) -> None:
        args = parse_args(["schedule", "update", "abc", "--no-enabled", "--hour", "7"])
        assert args.schedule_id == "abc"
        fields, search = _schedule_changes(args)
        assert fields == {"enabled": False, "hour": 7}
        assert search == {}

    def test_leads_and_keywords(self) -> None:
        args = parse_args(["leads", "--status", "approved", "--limit", "5"])
        assert (args.status, args.limit) == ("approved", 5)
        args = parse_args(["keywords", "-k", "coffee", "--provider", "openai"])
        assert (args.keywords, args.per_keyword, args.provider) == (["coffee"], 5, "openai")


class TestMain:
    def test_missing_config_exits(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(tmp_path / "missing.yaml"), "usage"])
        assert exc.value.code == 1
        assert "Config file not found" in capsys.readouterr().err

    def test_usage(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--config", str(config_path), "usage"])
        assert "serpapi: 0/50 searches, 0/200 leads today" in capsys.readouterr().out

    def test_schedule_lifecycle(
        self, config_path: Path, capsys: pytest.CaptureFixture[str],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        cfg = ["--config", str(config_path)]
        main([*cfg, "schedule", "add", "--name", "Wed coffee", "--frequency", "weekly",
              "--hour", "9", "--minute", "30", "--day-of-week", "3", "-k", "coffee shops"])
        out = capsys.readouterr().out
        assert "Created schedule" in out
        assert "'30 9 * * 3'" in out
        schedule_id = out.split("Created schedule ")[1].split()[0]

        main([*cfg, "schedule", "list"])
        assert "1 schedules" in capsys.readouterr().out

        main([*cfg, "schedule", "update", schedule_id, "--no-enabled"])
        assert "disabled" in capsys.readouterr().out

        # A run without credentials fails inside the guard and is recorded as an error.
        monkeypatch.delenv("SERP_API_KEY", raising=False)
        main([*cfg, "schedule", "run", schedule_id])
        out = capsys.readouterr().out
        assert "Run error" in out
        assert "last: error" in out

        main([*cfg, "schedule", "delete", schedule_id])
        assert "Deleted schedule" in capsys.readouterr().out

    def test_unknown_schedule(self, config_path: Path) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(config_path), "schedule", "show", "ghost"])
        assert exc.value.code == 1

    def test_invalid_schedule_payload(self, config_path: Path) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(config_path), "schedule", "add", "--name", "x",
                  "--frequency", "weekly", "--hour", "9"])
        assert exc.value.code == 1
