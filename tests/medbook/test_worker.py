import asyncio
import logging
import threading
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from medbook import worker
from medbook.models.appointment import Appointment
from medbook.scheduling.status import AppointmentStatus

MANILA = ZoneInfo('Asia/Manila')
T = datetime(2026, 1, 5, 10, 0, tzinfo=MANILA)


def test_run_sweeps_once_uses_a_fresh_session(db, session_factory, doctor_ref, patient, make_appointment) -> None:
    appointment = make_appointment(
        doctor_ref,
        patient,
        T - timedelta(minutes=15),
        status=AppointmentStatus.BOOKED,
        deposit_paid=True,
    )

    summary = worker.run_sweeps_once(session_factory=session_factory, now=T)

    assert summary['no_show']['no_show_both'] == 1
    db.expire_all()
    assert db.get(Appointment, appointment.id).status == AppointmentStatus.NO_SHOW_BOTH


def test_run_sweeps_once_closes_session_on_failure(monkeypatch) -> None:
    closed = []

    class FakeSession:
        def close(self):
            closed.append(True)

    def broken_sweeps(db, *, now):
        raise RuntimeError('sweep crashed')

    monkeypatch.setattr(worker, 'run_sweeps', broken_sweeps)

    with pytest.raises(RuntimeError):
        worker.run_sweeps_once(session_factory=FakeSession, now=T)

    assert closed == [True]


class StopWorker(Exception):
    pass


def test_sweep_worker_runs_sweeps_off_the_event_loop_and_survives_failures(monkeypatch, caplog) -> None:
    calls = []
    sleeps = []

    def fake_sweeps_once():
        calls.append(threading.current_thread())
        if len(calls) == 1:
            raise RuntimeError('sweep crashed')
        return {}

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) == 2:
            raise StopWorker()

    monkeypatch.setattr(worker, 'run_sweeps_once', fake_sweeps_once)
    monkeypatch.setattr(worker.asyncio, 'sleep', fake_sleep)

    with caplog.at_level(logging.ERROR, logger='medbook.worker'):
        with pytest.raises(StopWorker):
            asyncio.run(worker.run_sweep_worker(interval_seconds=7))

    assert len(calls) == 2
    assert all(thread is not threading.main_thread() for thread in calls)
    assert sleeps == [7, 7]
    assert 'Error in appointment sweep loop' in caplog.text
