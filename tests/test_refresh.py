"""Tests for epic_board_sync.core.refresh."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from epic_board_sync.core.data_models import Credentials, JiraIssue, TrackedProject
from epic_board_sync.core.errors import FetchError, NoDataRefreshedError, ProjectRefreshError
from epic_board_sync.core.jira_client import FetchResult
from epic_board_sync.core.refresh import DEFAULT_PROJECTS, refresh_all, write_board

CREDS = Credentials("https://acme.atlassian.net", "a@b.com", "tok")


def _issues() -> list[JiraIssue]:
    return [
        JiraIssue(key="ADV-1", summary="Epic one", status="To Do",
                  status_category="To Do", issue_type="Epic", iteration="4.1"),
        JiraIssue(key="ADV-2", summary="Epic two", status="Done",
                  status_category="Done", issue_type="Epic"),
    ]


def _client(results: dict[str, FetchResult | Exception]) -> MagicMock:
    client = MagicMock()

    def fetch(key: str) -> FetchResult:
        outcome = results[key]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    client.fetch_project_issues.side_effect = fetch
    return client


class TestRefreshAll:
    def test_partial_success(self, tmp_path: Path) -> None:
        client = _client({
            "ADVICE": FetchResult(issues=_issues()),
            "PDD": FetchResult(issues=[]),
        })
        report = refresh_all(CREDS, DEFAULT_PROJECTS, [tmp_path], client=client)

        assert report.success is True
        assert report.partial is True
        assert report.files_updated == ["board-saveAdvice.json"]
        assert report.errors == {"PDD": "No issues found"}
        assert report.results["ADVICE"].issues == 2
        assert report.results["ADVICE"].columns == 6
        assert report.message == "Data refreshed successfully. Updated 1 of 2 projects."
        assert not (tmp_path / "board-savePDD.json").exists()

    def test_written_document(self, tmp_path: Path) -> None:
        client = _client({"ADVICE": FetchResult(issues=_issues())})
        refresh_all(CREDS, [TrackedProject("ADVICE", "board.json")], [tmp_path], client=client)

        text = (tmp_path / "board.json").read_text(encoding="utf-8")
        doc = json.loads(text)
        assert text.startswith('{\n  "columns"')
        assert [e["key"] for e in doc["columns"]["4.1"]] == ["ADV-1"]
        assert [e["key"] for e in doc["columns"]["uncommitted"]] == ["ADV-2"]
        assert doc["columns"]["4.2"] == []

    def test_all_fail(self, tmp_path: Path) -> None:
        client = _client({
            "ADVICE": FetchError("ADVICE", "boom", status_code=500, body="x"),
            "PDD": FetchError("PDD", "bang"),
        })
        with pytest.raises(NoDataRefreshedError) as info:
            refresh_all(CREDS, DEFAULT_PROJECTS, [tmp_path], client=client)
        assert "All projects failed" in str(info.value)
        assert info.value.errors == {"ADVICE": "boom", "PDD": "bang"}

    def test_all_success(self, tmp_path: Path) -> None:
        client = _client({
            "ADVICE": FetchResult(issues=_issues()),
            "PDD": FetchResult(issues=_issues()),
        })
        report = refresh_all(CREDS, DEFAULT_PROJECTS, [tmp_path], client=client)
        assert report.partial is False
        assert report.errors == {}
        assert report.files_updated == ["board-saveAdvice.json", "board-savePDD.json"]

    def test_missing_dirs_skipped_not_created(self, tmp_path: Path) -> None:
        existing = tmp_path / "public"
        existing.mkdir()
        missing = tmp_path / "dist"
        client = _client({"ADVICE": FetchResult(issues=_issues())})

        refresh_all(CREDS, [TrackedProject("ADVICE", "a.json")], [existing, missing], client=client)

        assert (existing / "a.json").exists()
        assert not missing.exists()

    def test_no_existing_dir_is_project_error(self, tmp_path: Path) -> None:
        client = _client({"ADVICE": FetchResult(issues=_issues())})
        with pytest.raises(NoDataRefreshedError) as info:
            refresh_all(
                CREDS, [TrackedProject("ADVICE", "a.json")], [tmp_path / "nope"], client=client,
            )
        assert info.value.errors == {"ADVICE": "No output directory available"}

    def test_writes_every_existing_dir(self, tmp_path: Path) -> None:
        dirs = [tmp_path / "public", tmp_path / "dist"]
        for d in dirs:
            d.mkdir()
        client = _client({"ADVICE": FetchResult(issues=_issues())})
        report = refresh_all(CREDS, [TrackedProject("ADVICE", "a.json")], dirs, client=client)
        assert report.files_updated == ["a.json"]
        assert all((d / "a.json").exists() for d in dirs)

    def test_replaces_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "a.json"
        target.write_text("x" * 100_000, encoding="utf-8")
        client = _client({"ADVICE": FetchResult(issues=_issues())})
        refresh_all(CREDS, [TrackedProject("ADVICE", "a.json")], [tmp_path], client=client)
        assert json.loads(target.read_text(encoding="utf-8"))["columns"]

    def test_unresolved_parents_reported(self, tmp_path: Path) -> None:
        client = _client({
            "ADVICE": FetchResult(issues=_issues(), unresolved_parents=["ADV-99"]),
        })
        report = refresh_all(CREDS, [TrackedProject("ADVICE", "a.json")], [tmp_path], client=client)
        assert report.unresolved_parents == {"ADVICE": ["ADV-99"]}
        assert report.errors == {}


class TestWriteBoard:
    def test_returns_written_paths(self, tmp_path: Path) -> None:
        written = write_board("{}", "b.json", [tmp_path, tmp_path / "missing"])
        assert written == [tmp_path / "b.json"]

    def test_failed_dir_does_not_stop_others(self, tmp_path: Path) -> None:
        broken, good = tmp_path / "public", tmp_path / "dist"
        (broken / "b.json").mkdir(parents=True)
        good.mkdir()
        with pytest.raises(ProjectRefreshError) as info:
            write_board("{}", "b.json", [broken, good])
        assert (good / "b.json").read_text(encoding="utf-8") == "{}"
        message = str(info.value)
        assert str(broken / "b.json") in message
        assert f"Already replaced: {good / 'b.json'}" in message

    def test_failed_write_recorded_per_project(self, tmp_path: Path) -> None:
        (tmp_path / "a.json").mkdir()
        client = _client({
            "ADVICE": FetchResult(issues=_issues()),
            "PDD": FetchResult(issues=_issues()),
        })
        report = refresh_all(
            CREDS,
            [TrackedProject("ADVICE", "a.json"), TrackedProject("PDD", "p.json")],
            [tmp_path],
            client=client,
        )
        assert report.files_updated == ["p.json"]
        assert "Already replaced: none" in report.errors["ADVICE"]
        assert report.to_dict()["total_projects"] == 2
