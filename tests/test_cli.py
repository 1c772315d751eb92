"""Tests for the index management command line."""

from pathlib import Path
from unittest.mock import patch

import pytest

from agrisearch.config import Settings
from scripts.index_documents import build_parser, run


class TestParser:
    """Tests for argument parsing."""

    def test_search_arguments(self) -> None:
        """Search filters are parsed, with repeatable types."""
        args = build_parser().parse_args(
            [
                "--user",
                "farmer-1",
                "search",
                "corn nitrogen",
                "--type",
                "soil_analysis",
                "--type",
                "field_data",
                "--county",
                "19153",
            ]
        )

        assert args.command == "search"
        assert args.type == ["soil_analysis", "field_data"]
        assert args.county == "19153"
        assert args.limit == 10
        assert args.backend == "local"

    def test_user_required(self) -> None:
        """The user is mandatory."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["stats"])

    def test_unknown_type_rejected(self) -> None:
        """Only known document types are accepted."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--user", "u", "search", "q", "--type", "invoice"])


class TestRun:
    """Tests for running commands against an in-memory store."""

    async def test_stats_on_empty_index(
        self,
        test_settings: Settings,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Stats of a new index show no documents."""
        args = build_parser().parse_args(["--user", "farmer-1", "stats"])

        with patch("scripts.index_documents.get_settings", return_value=test_settings):
            code = await run(args)

        output = capsys.readouterr().out
        assert code == 0
        assert "Documents:    0" in output
        assert "Last updated: -" in output

    async def test_clear(
        self,
        test_settings: Settings,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Clearing an empty index removes nothing."""
        args = build_parser().parse_args(["--user", "farmer-1", "clear"])

        with patch("scripts.index_documents.get_settings", return_value=test_settings):
            code = await run(args)

        assert code == 0
        assert "Removed 0 documents" in capsys.readouterr().out

    async def test_missing_source_fails(self, test_settings: Settings, tmp_path: Path) -> None:
        """Application errors give a non-zero exit code."""
        args = build_parser().parse_args(
            ["--user", "farmer-1", "index", str(tmp_path / "missing.json")]
        )

        with patch("scripts.index_documents.get_settings", return_value=test_settings):
            code = await run(args)

        assert code == 1
