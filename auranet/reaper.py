"""
Orphan recovery for the Aura test network harness.
Kills node process groups left behind by a crashed previous run.
"""
import os
import signal
import typing as t
from pathlib import Path

from config import PARENT_PID_PATH


def kill_process_group(pgid: int) -> bool:
    """
    SIGKILL an entire process group.

    Returns:
        True if the signal was delivered, False if the group is already gone.
    """
    try:
        os.killpg(pgid, signal.SIGKILL)
        return True
    except (ProcessLookupError, PermissionError):
        return False


class ParentPidRecord:
    """
    Single-line file holding the pid of the first node of a run.
    Its presence means a previous run's node may still be alive.
    """

    def __init__(self, path: t.Union[str, Path] = PARENT_PID_PATH) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> t.Optional[int]:
        """Parsed pid, or None when missing or unparsable."""
        try:
            raw = self.path.read_text()
        except OSError:
            return None
        try:
            return int(raw.strip())
        except ValueError:
            print(f"[Reaper] Warning: ignoring malformed pid record {raw!r}")
            return None

    def write(self, pid: int) -> None:
        self.path.write_text(f"{pid}")

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


def reap_orphans(record: t.Optional[ParentPidRecord] = None) -> t.Optional[int]:
    """
    Kill the process group named by a leftover pid record, then delete it.

    A no-op when no record exists. Failing to signal (the group already
    exited) is not an error.

    Returns:
        The process group that was signalled, if any.
    """
    record = record or ParentPidRecord()
    if not record.exists():
        return None

    pid = record.read()
    killed = None
    if pid is not None and pid > 0:
        if pid == os.getpgrp():
            print(f"[Reaper] Warning: pid record {pid} names our own process group; not killing it")
        else:
            print(f"[Reaper] Attempting to kill orphaned node; pid: {pid}")
            if kill_process_group(pid):
                killed = pid
    record.clear()
    return killed
