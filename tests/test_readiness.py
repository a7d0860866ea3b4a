import subprocess

import pytest

from auranet.errors import LaunchError, NotReadyError
from auranet.network import ManagedProcess
from auranet.readiness import ReadinessGate

from conftest import FakeProbe


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _gate(probe, clock, **kwargs):
    return ReadinessGate(probe, clock=clock, sleep=clock.sleep, **kwargs)


def test_returns_chain_id_once_probe_answers():
    clock = FakeClock()
    probe = FakeProbe(chain_id=1337, misses=3)
    assert _gate(probe, clock).await_ready("http://localhost:8050") == 1337
    assert probe.urls == ["http://localhost:8050"] * 4


def test_backoff_grows_and_caps():
    clock = FakeClock()
    probe = FakeProbe(misses=6)
    _gate(probe, clock, initial_delay=0.25, max_delay=1.0).await_ready("http://localhost:8050")
    assert clock.sleeps == [0.25, 0.5, 1.0, 1.0, 1.0, 1.0]


def test_chain_id_zero_counts_as_ready():
    clock = FakeClock()
    assert _gate(FakeProbe(chain_id=0), clock).await_ready("http://localhost:8050") == 0


def test_times_out_with_not_ready():
    clock = FakeClock()
    gate = _gate(FakeProbe(chain_id=None), clock, timeout=10.0)
    with pytest.raises(NotReadyError):
        gate.await_ready("http://localhost:8050")
    assert clock.now == pytest.approx(10.0)


def test_per_call_timeout_overrides_default():
    clock = FakeClock()
    gate = _gate(FakeProbe(chain_id=None), clock, timeout=100.0)
    with pytest.raises(NotReadyError):
        gate.await_ready("http://localhost:8050", timeout=1.0)
    assert clock.now == pytest.approx(1.0)


def test_attempt_budget():
    clock = FakeClock()
    probe = FakeProbe(chain_id=None)
    with pytest.raises(NotReadyError):
        _gate(probe, clock, max_attempts=3).await_ready("http://localhost:8050")
    assert len(probe.urls) == 3


def test_dead_process_fails_fast():
    popen = subprocess.Popen(["false"])
    popen.wait()
    node = ManagedProcess(popen, 0, 8050, "http://localhost:8050")
    node.exited.set()

    clock = FakeClock()
    with pytest.raises(LaunchError):
        _gate(FakeProbe(chain_id=None), clock).await_ready(node.rpc_url, process=node)
    assert clock.sleeps == []
