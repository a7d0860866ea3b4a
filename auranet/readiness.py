"""
Readiness gate for the Aura test network harness.
Blocks the caller until a node answers JSON-RPC.
"""
import time
import typing as t

from config import READINESS_INITIAL_DELAY, READINESS_MAX_DELAY, READINESS_TIMEOUT
from .errors import LaunchError, NotReadyError
from .network import ManagedProcess

ChainIdProbe = t.Callable[[str], t.Optional[int]]


class ReadinessGate:
    """
    Polls a liveness probe with exponential backoff until it reports a
    chain id, the deadline passes, or the attempt budget runs out.

    Usage:
        gate = ReadinessGate(ConnectionManager(retry_total=0).chain_id)
        chain_id = gate.await_ready("http://localhost:8050")
    """

    def __init__(
        self,
        probe: ChainIdProbe,
        timeout: float = READINESS_TIMEOUT,
        initial_delay: float = READINESS_INITIAL_DELAY,
        max_delay: float = READINESS_MAX_DELAY,
        backoff_factor: float = 2.0,
        max_attempts: t.Optional[int] = None,
        clock: t.Callable[[], float] = time.monotonic,
        sleep: t.Callable[[float], None] = time.sleep,
    ) -> None:
        self.probe = probe
        self.timeout = timeout
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.max_attempts = max_attempts
        self._clock = clock
        self._sleep = sleep

    def await_ready(
        self,
        rpc_url: str,
        timeout: t.Optional[float] = None,
        process: t.Optional[ManagedProcess] = None,
    ) -> int:
        """
        Block until the node at rpc_url reports its chain id.

        Args:
            rpc_url: JSON-RPC endpoint to probe.
            timeout: Overrides the gate's default deadline (seconds).
            process: When given, stop early if this node has already exited.

        Returns:
            The chain id reported by the node.

        Raises:
            NotReadyError: deadline or attempt budget exhausted.
            LaunchError: the node process died while we were waiting.
        """
        deadline = self._clock() + (self.timeout if timeout is None else timeout)
        delay = self.initial_delay
        attempts = 0

        while True:
            attempts += 1
            chain_id = self.probe(rpc_url)
            if chain_id is not None:
                print(f"[Readiness] {rpc_url} is up; chain id {chain_id} after {attempts} attempt(s)")
                return chain_id

            if process is not None and process.exited.is_set():
                raise LaunchError(
                    f"Node {process.ordinal} (pid {process.pid}) exited with status "
                    f"{process.returncode} before {rpc_url} became ready"
                )
            if self.max_attempts is not None and attempts >= self.max_attempts:
                raise NotReadyError(f"{rpc_url} not ready after {attempts} attempts")
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise NotReadyError(f"Timeout waiting for JSON-RPC at {rpc_url} after {attempts} attempts")

            self._sleep(min(delay, remaining))
            delay = min(delay * self.backoff_factor, self.max_delay)
