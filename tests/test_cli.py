"""Tests for the command-line entry point."""

import json
import logging

import pytest

import main as cli
from config import ConfigurationManager
from invoice_pipeline.ocr_engine import OcrEngineRegistry
from invoice_pipeline.pipeline import ExtractionOrchestrator, InMemoryProgressPublisher
from invoice_pipeline.utils.exceptions import ErrorCodes
from invoice_pipeline.utils.logger import ROOT_LOGGER_NAME

from conftest import StubLlmClient, StubOcrEngine


@pytest.fixture(autouse=True)
def isolated_runtime(monkeypatch):
    """Fresh configuration per test; logger handlers restored afterwards."""
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    ConfigurationManager.reset()
    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level, propagate = list(app_logger.handlers), app_logger.level, app_logger.propagate
    yield
    ConfigurationManager.reset()
    app_logger.handlers[:] = handlers
    app_logger.setLevel(level)
    app_logger.propagate = propagate


@pytest.fixture
def stub_pipeline(monkeypatch):
    """Replace production wiring with stub OCR and LLM; returns the OCR stub."""
    ocr = StubOcrEngine()

    def build(settings, gateway=None, publisher=None, llm_client=None):
        return ExtractionOrchestrator(
            registry=OcrEngineRegistry([ocr]),
            llm_client=llm_client or StubLlmClient(),
            gateway=gateway,
            publisher=publisher or InMemoryProgressPublisher(),
            settings=settings.pipeline,
        )

    monkeypatch.setattr(cli, "build_orchestrator", build)
    return ocr


@pytest.fixture
def input_dir(tmp_path, png_bytes):
    directory = tmp_path / "invoices"
    directory.mkdir()
    (directory / "b_scan.png").write_bytes(png_bytes)
    (directory / "a_scan.png").write_bytes(png_bytes)
    (directory / "notes.txt").write_text("not an invoice")
    return directory


class TestArguments:

    def test_input_required(self):
        with pytest.raises(SystemExit):
            cli.parse_arguments([])

    def test_database_options_are_exclusive(self):
        with pytest.raises(SystemExit):
            cli.parse_arguments(["-i", "x", "--database", "a.db", "--no-database"])

    def test_defaults(self):
        args = cli.parse_arguments(["-i", "invoices"])
        assert args.output is None
        assert args.database is None
        assert not args.no_database
        assert not args.debug


class TestCollectInputFiles:

    def test_directory_keeps_supported_files_sorted(self, input_dir):
        files = cli.collect_input_files(str(input_dir))
        assert [f.name for f in files] == ["a_scan.png", "b_scan.png"]

    def test_single_file(self, input_dir):
        assert cli.collect_input_files(str(input_dir / "a_scan.png")) == [input_dir / "a_scan.png"]

    def test_missing_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            cli.collect_input_files(str(tmp_path / "missing"))

    def test_unsupported_single_file(self, input_dir):
        with pytest.raises(ValueError):
            cli.collect_input_files(str(input_dir / "notes.txt"))


class TestMain:

    def test_processes_directory_and_writes_report(self, stub_pipeline, input_dir, tmp_path, capsys):
        report = tmp_path / "out" / "results.json"

        exit_code = cli.main(["-i", str(input_dir), "--no-database", "-o", str(report)])

        assert exit_code == 0
        assert sorted(stub_pipeline.calls) == ["a_scan.png", "b_scan.png"]
        results = json.loads(report.read_text(encoding='utf-8'))
        assert [r['file'] for r in results] == ["a_scan.png", "b_scan.png"]
        assert all(r['status'] == 'SUCCESS' for r in results)
        assert results[0]['invoice']['invoice_number'] == "1001"
        assert results[0]['invoice']['amount'] == "250.00"
        assert results[0]['extraction']['status'] == "COMPLETED"
        assert "2 succeeded, 0 failed" in capsys.readouterr().out

    def test_failed_extraction_sets_exit_code(self, stub_pipeline, input_dir, tmp_path):
        stub_pipeline.text = ""
        report = tmp_path / "results.json"

        exit_code = cli.main(["-i", str(input_dir / "a_scan.png"), "--no-database", "-o", str(report)])

        assert exit_code == 1
        (result,) = json.loads(report.read_text(encoding='utf-8'))
        assert result['status'] == 'FAILED'
        assert result['error']['errorCode'] == ErrorCodes.EXTRACTION_FAILED

    def test_database_option_overrides_settings(self, stub_pipeline, input_dir, tmp_path, monkeypatch):
        database = tmp_path / "db" / "invoices.db"
        captured = {}
        build = cli.build_orchestrator

        def capture(settings, gateway=None, **kwargs):
            captured['settings'] = settings
            return build(settings, gateway=gateway or cli.InMemoryPersistenceGateway(), **kwargs)

        monkeypatch.setattr(cli, "build_orchestrator", capture)

        assert cli.main(["-i", str(input_dir), "--database", str(database)]) == 0
        assert captured['settings'].storage.database_enabled
        assert captured['settings'].storage.database_path == database

    def test_debug_lowers_log_level(self, stub_pipeline, input_dir):
        cli.main(["-i", str(input_dir), "--no-database", "--debug"])

        app_logger = logging.getLogger(ROOT_LOGGER_NAME)
        assert app_logger.level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in app_logger.handlers)

    def test_missing_input(self, tmp_path, capsys):
        assert cli.main(["-i", str(tmp_path / "missing"), "--no-database"]) == 1
        assert "Input path not found" in capsys.readouterr().err

    def test_empty_directory(self, tmp_path):
        assert cli.main(["-i", str(tmp_path), "--no-database"]) == 1
