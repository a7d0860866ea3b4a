"""
Aura test network harness: boots, tracks and tears down local nodes.
"""

from .bootstrap import BootstrapResult, NetworkBootstrap
from .cache import ArtifactCache, ArtifactKind, CacheKey
from .identity import IdentityProvider, SigningIdentity
from .network import ConnectionManager, ManagedProcess, NodeLauncher
from .readiness import ReadinessGate
from .reaper import ParentPidRecord, reap_orphans

__all__ = [
    "ArtifactCache",
    "ArtifactKind",
    "BootstrapResult",
    "CacheKey",
    "ConnectionManager",
    "IdentityProvider",
    "ManagedProcess",
    "NetworkBootstrap",
    "NodeLauncher",
    "ParentPidRecord",
    "ReadinessGate",
    "SigningIdentity",
    "reap_orphans",
]
