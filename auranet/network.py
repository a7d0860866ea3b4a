"""
Network management for the Aura test network harness.
Node process lifecycle & Web3 connection management.
"""
import os
import subprocess
import threading
import typing as t
from concurrent.futures import Future, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from pathlib import Path

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from web3 import Web3
from web3.exceptions import Web3Exception
from web3.providers import HTTPProvider

from config import (
    LAUNCH_TIMEOUT,
    NODE_COMMAND,
    NODE_LOG_DIR,
    NODE_LOGGING,
    RPC_BASE_PORT,
    RPC_HOST,
    get_rpc_url,
)
from .errors import LaunchError
from .identity import SigningIdentity
from .reaper import ParentPidRecord, kill_process_group


@dataclass
class ManagedProcess:
    """
    One spawned node. It leads its own process group, so pgid == pid.
    """
    popen: subprocess.Popen
    ordinal: int
    port: int
    rpc_url: str
    exited: threading.Event = field(default_factory=threading.Event)
    owns_pid_record: bool = False

    @property
    def pid(self) -> int:
        return self.popen.pid

    @property
    def pgid(self) -> int:
        return self.popen.pid

    @property
    def returncode(self) -> t.Optional[int]:
        """Exit status once the wait thread has reaped the node."""
        if not self.exited.is_set():
            return None
        return self.popen.returncode


class NodeLauncher:
    """
    Spawns node processes in their own process groups and tracks them
    until teardown.
    """

    def __init__(
        self,
        command: t.Optional[t.Sequence[str]] = None,
        rpc_host: str = RPC_HOST,
        base_port: int = RPC_BASE_PORT,
        pid_record: t.Optional[ParentPidRecord] = None,
        logging_level: str = NODE_LOGGING,
        log_dir: t.Optional[t.Union[str, Path]] = NODE_LOG_DIR,
        cwd: t.Optional[t.Union[str, Path]] = None,
        launch_timeout: float = LAUNCH_TIMEOUT,
    ) -> None:
        self.command = list(command or NODE_COMMAND)
        self.rpc_host = rpc_host
        self.next_port = base_port
        self.pid_record = pid_record or ParentPidRecord()
        self.logging_level = logging_level
        self.log_dir = Path(log_dir) if log_dir is not None else None
        self.cwd = cwd
        self.launch_timeout = launch_timeout
        self.processes: t.List[ManagedProcess] = []
        self._lock = threading.Lock()
        self._launched = 0
        # Bumped by teardown; spawns from an older generation are killed on arrival
        self._generation = 0

    def managed(self) -> t.List[ManagedProcess]:
        """Snapshot of the registry."""
        with self._lock:
            return list(self.processes)

    def build_env(self, identity: t.Optional[SigningIdentity], port: int) -> t.Dict[str, str]:
        env = dict(os.environ)
        env["LOGGING"] = self.logging_level
        env["RPC_PORT"] = str(port)
        if identity is not None:
            env["ENGINE_SIGNER"] = identity.address
            env["ENGINE_SIGNER_KEY_JSON"] = identity.keystore_json
            env["ENGINE_SIGNER_PRIVATE_KEY"] = identity.private_key_hex
        return env

    def launch(self, identity: t.Optional[SigningIdentity] = None) -> ManagedProcess:
        """
        Start one node and return as soon as the OS has assigned it a pid.

        The spawn and the blocking wait run on a background thread; the
        pid is handed back through a single-use future. The RPC port is
        reserved before the node is known to be alive and is never reused.

        Raises:
            LaunchError: the process could not be spawned in time.
        """
        ordinal = self._launched
        self._launched += 1
        port = self.next_port
        self.next_port += 1

        env = self.build_env(identity, port)
        with self._lock:
            generation = self._generation
        started: "Future[ManagedProcess]" = Future()
        print(f"[Launcher] Attempting to run node {ordinal} with JSON-RPC listening on port {port}")
        thread = threading.Thread(
            target=self._run_node,
            args=(ordinal, port, env, started, generation),
            name=f"node-{ordinal}",
            daemon=True,
        )
        thread.start()

        try:
            proc = started.result(timeout=self.launch_timeout)
        except FutureTimeoutError as exc:
            raise LaunchError(f"Node {ordinal} was not spawned within {self.launch_timeout}s") from exc
        print(f"[Launcher] Running node {ordinal} on port {port}; pid: {proc.pid}")
        return proc

    def _run_node(
        self,
        ordinal: int,
        port: int,
        env: t.Dict[str, str],
        started: "Future[ManagedProcess]",
        generation: int,
    ) -> None:
        log_file = None
        try:
            if self.log_dir is not None:
                self.log_dir.mkdir(parents=True, exist_ok=True)
                log_file = open(self.log_dir / f"node_{ordinal}_{port}.log", "w", encoding="utf-8")
            popen = subprocess.Popen(
                self.command,
                env=env,
                cwd=self.cwd,
                stdout=log_file,
                stderr=subprocess.STDOUT if log_file is not None else None,
                start_new_session=True,  # own process group, killed as a whole
            )
        except OSError as exc:
            if log_file is not None:
                log_file.close()
            print(f"[Launcher] Failed to run node {ordinal}; {exc}")
            started.set_exception(LaunchError(f"Failed to run node {ordinal}: {exc}"))
            return

        proc = ManagedProcess(popen, ordinal, port, get_rpc_url(port, self.rpc_host))
        with self._lock:
            torn_down = generation != self._generation
            if not torn_down:
                # The first node of a run is the one a later run must be able to reap
                proc.owns_pid_record = not self.processes
                self.processes.append(proc)
                if proc.owns_pid_record:
                    try:
                        self.pid_record.write(popen.pid)
                    except OSError as exc:
                        print(f"[Launcher] Warning: could not record parent pid {popen.pid}: {exc}")

        if torn_down:
            print(f"[Launcher] Node {ordinal} (pid {popen.pid}) spawned after teardown; killing it")
            kill_process_group(popen.pid)
            try:
                popen.wait()
            finally:
                if log_file is not None:
                    log_file.close()
                proc.exited.set()
            started.set_exception(LaunchError(f"Node {ordinal} was spawned after teardown"))
            return
        started.set_result(proc)

        try:
            returncode = popen.wait()
            if returncode == 0:
                print(f"[Launcher] Node {ordinal} with pid {popen.pid} exited cleanly")
                if proc.owns_pid_record:
                    self.pid_record.clear()
            else:
                print(f"[Launcher] Node {ordinal} with pid {popen.pid} exited with status {returncode}")
        finally:
            if log_file is not None:
                log_file.close()
            proc.exited.set()

    def teardown(self, wait: float = 5.0) -> None:
        """
        SIGKILL every tracked process group and forget it.

        Safe to call repeatedly and with nothing running.
        """
        with self._lock:
            procs = list(self.processes)
            self.processes.clear()
            self._generation += 1
        for proc in procs:
            print(f"[Launcher] Attempting to kill running node {proc.ordinal}; pid: {proc.pid}")
            kill_process_group(proc.pgid)
        for proc in procs:
            proc.exited.wait(wait)
        if procs:
            self.pid_record.clear()


class ConnectionManager:
    """
    Manages Web3 connections to node RPC endpoints over a shared HTTP session.
    """
    def __init__(self, retry_total: int = 10, request_timeout: float = 120) -> None:
        self.retry_total = retry_total
        self.request_timeout = request_timeout
        self._connections: t.Dict[str, Web3] = {}
        self._session = self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=20,
            pool_maxsize=20,
            max_retries=Retry(
                total=self.retry_total,
                backoff_factor=1.0,
                status_forcelist=[500, 502, 503, 504],
            ),
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def get_web3(self, rpc_url: str) -> Web3:
        """
        Returns a cached Web3 instance for the endpoint.
        No connectivity check here; use chain_id() for that.
        """
        if rpc_url in self._connections:
            return self._connections[rpc_url]

        provider = HTTPProvider(
            rpc_url,
            session=self._session,
            request_kwargs={"timeout": self.request_timeout},
            exception_retry_configuration=None,
        )
        w3 = Web3(provider)
        self._connections[rpc_url] = w3
        return w3

    def chain_id(self, rpc_url: str) -> t.Optional[int]:
        """
        Liveness probe: the node's chain id, or None while it is not answering.
        """
        try:
            return self.get_web3(rpc_url).eth.chain_id
        except (requests.exceptions.RequestException, Web3Exception, ValueError):
            return None
