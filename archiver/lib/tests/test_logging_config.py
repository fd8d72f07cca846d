"""Tests for structured logging."""

import json
import logging
from pathlib import Path

import pytest

from archiver.lib.logging_config import (
    RunContextFilter,
    StructuredFormatter,
    log_with_context,
    setup_logging,
)
from archiver.services.pipeline import PipelineContext, RunState, run_pipeline
from archiver.services.tests.fakes import FakeMinIOClient, make_config


def _record(message: str = "Uploaded zip file", **attrs) -> logging.LogRecord:
    record = logging.LogRecord("archiver.test", logging.INFO, __file__, 10, message, None, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest left it."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    """Records render as one JSON object."""

    @pytest.mark.unit
    def test_base_fields(self):
        data = json.loads(StructuredFormatter("archiver").format(_record()))

        assert data["message"] == "Uploaded zip file"
        assert data["level"] == "INFO"
        assert data["service"] == "archiver"
        assert data["logger"] == "archiver.test"
        assert data["timestamp"].endswith("Z")

    @pytest.mark.unit
    def test_extra_fields_are_flattened(self):
        record = _record(extra_bucket="dumps", extra_size=42, run_id="r1", stage="uploading")

        data = json.loads(StructuredFormatter("archiver").format(record))

        assert data["bucket"] == "dumps"
        assert data["size"] == 42
        assert data["run_id"] == "r1"
        assert data["stage"] == "uploading"

    @pytest.mark.unit
    def test_exception_block(self):
        try:
            raise OSError("disk full")
        except OSError as e:
            record = _record(exc_info=(type(e), e, e.__traceback__))

        data = json.loads(StructuredFormatter("archiver").format(record))

        assert data["exception"]["type"] == "OSError"
        assert data["exception"]["message"] == "disk full"


class TestRunContextFilter:
    """Records are stamped with the bound run and its stage."""

    @pytest.mark.unit
    def test_stamps_run_id_and_stage_while_bound(self):
        ctx = PipelineContext(run_id="abc", source_dir=Path("dumps"), archive_path=Path("dump.zip"), cutoff_ms=0)
        ctx.state = RunState.ARCHIVING
        run_filter = RunContextFilter()
        run_filter.bind(ctx)

        record = _record()
        run_filter.filter(record)

        assert record.run_id == "abc"
        assert record.stage == "archiving"
        assert run_filter.run_id == "abc"

    @pytest.mark.unit
    def test_idle_run_has_no_stage(self):
        ctx = PipelineContext(run_id="abc", source_dir=Path("dumps"), archive_path=Path("dump.zip"), cutoff_ms=0)
        run_filter = RunContextFilter()
        run_filter.bind(ctx)

        record = _record()
        run_filter.filter(record)

        assert record.run_id == "abc"
        assert not hasattr(record, "stage")

    @pytest.mark.unit
    def test_unbound_filter_leaves_records_alone(self):
        run_filter = RunContextFilter()
        run_filter.bind(None)

        record = _record()
        run_filter.filter(record)

        assert not hasattr(record, "run_id")
        assert run_filter.run_id is None

    @pytest.mark.unit
    def test_pipeline_records_carry_run_and_stage(self, tmp_path, caplog):
        caplog.set_level(logging.INFO)
        run_filter = RunContextFilter()
        caplog.handler.addFilter(run_filter)
        try:
            ctx = run_pipeline(make_config(tmp_path), client=FakeMinIOClient(), run_id="r42", run_filter=run_filter)
        finally:
            caplog.handler.removeFilter(run_filter)

        zipped = next(r for r in caplog.records if r.getMessage() == "Created zip file")
        assert zipped.run_id == "r42"
        assert zipped.stage == "archiving"
        assert ctx.succeeded
        assert run_filter.run_id is None


class TestSetupLogging:
    """Root logger wiring."""

    @pytest.mark.unit
    def test_configures_root(self, restore_root_logger):
        run_filter = setup_logging("archiver", logging.WARNING)

        assert isinstance(run_filter, RunContextFilter)
        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    @pytest.mark.unit
    def test_accepts_level_names(self, restore_root_logger):
        setup_logging("archiver", "debug")
        assert restore_root_logger.level == logging.DEBUG


@pytest.mark.unit
def test_log_with_context_adds_prefixed_extras(caplog):
    caplog.set_level(logging.INFO, logger="archiver.test")

    log_with_context(logging.getLogger("archiver.test"), "info", "Reading directory", path="/x")

    record = caplog.records[-1]
    assert record.getMessage() == "Reading directory"
    assert record.extra_path == "/x"
