"""Tests for doctor dependency verification."""

from __future__ import annotations

import sys
from io import StringIO
from unittest.mock import patch

import pytest

from meetrag.cli import doctor_cmd, main
from meetrag.core.config import MeetRAGConfig
from meetrag.core.doctor import DependencyCheck, DoctorResult, check_dependencies


def _config(**overrides) -> MeetRAGConfig:
    keys = {"groq_api_key": "gsk", "google_api_key": "g", "openai_api_key": ""}
    keys.update(overrides)
    return MeetRAGConfig(_env_file=None, **keys)


class TestCheckDependencies:
    """Tests for check_dependencies function."""

    def test_all_dependencies_found(self) -> None:
        with patch("shutil.which", side_effect=lambda name: f"/usr/bin/{name}"):
            result = check_dependencies(_config())

        assert isinstance(result, DoctorResult)
        names = [check.name for check in result.checks]
        assert names == ["ffprobe", "google_api_key", "groq_api_key"]
        assert result.all_ok is True

    def test_ffprobe_missing(self) -> None:
        with patch("shutil.which", return_value=None):
            result = check_dependencies(_config())

        ffprobe_check = next(c for c in result.checks if c.name == "ffprobe")
        assert ffprobe_check.available is False
        assert ffprobe_check.detail is None
        assert result.all_ok is False

    def test_missing_key_for_configured_provider(self) -> None:
        with patch("shutil.which", side_effect=lambda name: f"/usr/bin/{name}"):
            result = check_dependencies(_config(google_api_key=""))

        google = next(c for c in result.checks if c.name == "google_api_key")
        assert google.available is False
        assert google.detail == "embedding, generation"
        assert result.all_ok is False

    def test_openai_key_required_only_when_selected(self) -> None:
        config = _config(stt_provider="openai", openai_api_key="sk")
        with patch("shutil.which", side_effect=lambda name: f"/usr/bin/{name}"):
            result = check_dependencies(config)

        openai = next(c for c in result.checks if c.name == "openai_api_key")
        assert openai.detail == "stt"
        groq = next(c for c in result.checks if c.name == "groq_api_key")
        assert groq.detail == "refinement"

    def test_passthrough_refinement_needs_no_groq_key(self) -> None:
        config = _config(stt_provider="openai", openai_api_key="sk", refinement_provider="passthrough", groq_api_key="")
        with patch("shutil.which", side_effect=lambda name: f"/usr/bin/{name}"):
            result = check_dependencies(config)

        assert "groq_api_key" not in [c.name for c in result.checks]
        assert result.all_ok is True


class TestDoctorResult:
    def test_all_ok_ignores_optional_checks(self) -> None:
        result = DoctorResult(
            checks=[
                DependencyCheck(name="ffprobe", available=True, detail="/usr/bin/ffprobe"),
                DependencyCheck(name="extra", available=False, detail=None, required=False),
            ]
        )
        assert result.all_ok is True

    def test_all_ok_true_when_empty(self) -> None:
        assert DoctorResult().all_ok is True


class TestDoctorCLI:
    """Tests for the doctor CLI command."""

    def test_doctor_command_registered(self) -> None:
        old_stdout = sys.stdout
        sys.stdout = StringIO()
        sys.argv = ["meetrag", "--help"]
        try:
            with pytest.raises(SystemExit) as exc_info:
                main()
            output = sys.stdout.getvalue()
        finally:
            sys.stdout = old_stdout

        assert "doctor" in output.lower()
        assert "worker" in output.lower()
        assert exc_info.value.code == 0

    def test_doctor_exit_code_0_all_found(self, monkeypatch) -> None:
        monkeypatch.setenv("MEETRAG_GROQ_API_KEY", "gsk")
        monkeypatch.setenv("MEETRAG_GOOGLE_API_KEY", "g")
        with patch("shutil.which", side_effect=lambda name: f"/usr/bin/{name}"):
            with pytest.raises(SystemExit) as exc_info:
                doctor_cmd()
        assert exc_info.value.code == 0

    def test_doctor_exit_code_1_missing_dep(self, monkeypatch) -> None:
        monkeypatch.setenv("MEETRAG_GROQ_API_KEY", "gsk")
        monkeypatch.setenv("MEETRAG_GOOGLE_API_KEY", "g")
        with patch("shutil.which", return_value=None):
            with pytest.raises(SystemExit) as exc_info:
                doctor_cmd()
        assert exc_info.value.code == 1
