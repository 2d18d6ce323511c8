"""Tests for AgentObserver event recording."""

from __future__ import annotations

import logging

import pytest

from agent_orchestrator.config import LoggingConfig, OrchestratorConfig
from agent_orchestrator.engine.stub import StubEngine, StubScript
from agent_orchestrator.observability import LOGGER_NAME, AgentObserver, setup_logging


def test_session_stats():
    observer = AgentObserver()
    observer.log_run_start("e1", "coder", "Fix")
    observer.log_run_end("e1", "coder", "s1", True, 12.5, artifacts=2)
    observer.log_run_end("e2", "coder", "unknown", False, 7.5)
    observer.log_delegation(["planner", "coder"], True, 3.0)
    observer.log_batch("b1", 3, 1, 40.0)
    observer.log_error("execution", "boom")

    stats = observer.get_session_stats()

    assert stats == {
        "event_count": 6,
        "runs": 2,
        "failed_runs": 1,
        "delegations": 1,
        "batches": 1,
        "errors": 1,
        "total_run_duration_ms": 20.0,
    }

    observer.clear()
    assert len(observer.events) == 0


def test_events_keep_a_bounded_window():
    observer = AgentObserver(max_events=3)
    observer.log_run_end("e1", "coder", "s1", False, 100.0)
    observer.log_error("execution", "boom")
    for i in range(3):
        observer.log_run_end(f"e{i + 2}", "coder", f"s{i + 2}", True, 1.0)

    stats = observer.get_session_stats()

    assert len(observer.events) == 3
    assert [e.data["execution_id"] for e in observer.events] == ["e2", "e3", "e4"]
    assert stats["runs"] == 3
    assert stats["failed_runs"] == 0
    assert stats["errors"] == 0
    assert stats["total_run_duration_ms"] == 3.0


def test_service_sizes_observer_from_config(make_service):
    config = OrchestratorConfig(logging=LoggingConfig(max_events=7))
    service = make_service(config=config)

    assert service.observer.events.maxlen == 7


def test_setup_logging_is_idempotent():
    package_logger = logging.getLogger(LOGGER_NAME)
    original = list(package_logger.handlers)
    try:
        logger = setup_logging(verbose=True)
        handlers = list(logger.handlers)
        assert logger.level == logging.INFO

        again = setup_logging(verbose=False)

        assert again is package_logger
        assert again.handlers == handlers
        assert len(handlers) == max(len(original), 1)
        assert again.level == logging.WARNING
    finally:
        package_logger.handlers = original


@pytest.mark.asyncio
async def test_service_records_runs_and_delegations(make_service):
    engine = StubEngine({"planner": StubScript(delegations=[("coder", "Implement")])})
    service = make_service(engine)

    await service.run("planner", "Plan")

    stats = service.observer.get_session_stats()
    assert stats["runs"] == 2
    assert stats["delegations"] == 1
    assert stats["failed_runs"] == 0
