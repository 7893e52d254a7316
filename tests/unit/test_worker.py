"""Unit tests for worker wiring."""

from datetime import time
from unittest.mock import AsyncMock

from src.config.settings import Settings
from src.worker.run import SweepRunners, build_scheduler


def test_scheduler_runs_both_sweeps_at_configured_times():
    settings = Settings(contract_sweep_time=time(8, 30), rent_sweep_time=time(11, 0))
    runners = SweepRunners(db=AsyncMock())

    scheduler = build_scheduler(settings, runners)

    assert [(job.name, job.run_at) for job in scheduler.jobs] == [
        ("contract_sweep", time(8, 30)),
        ("rent_sweep", time(11, 0)),
    ]
    assert all(job.last_run is None for job in scheduler.jobs)
