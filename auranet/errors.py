"""
Error taxonomy for the Aura test network harness.
Every bootstrap step fails fast with one of these.
"""


class BootstrapError(RuntimeError):
    """Base class for every failure raised while booting the network."""


class ArtifactIOError(BootstrapError):
    """Cache or working-directory read/write failed."""


class ArtifactNotFoundError(BootstrapError):
    """Requested artifact is not present in the cache."""


class CorruptCacheError(BootstrapError):
    """Cached files are present but cannot be decoded."""


class BuildError(BootstrapError):
    """The external chainspec builder failed."""


class LaunchError(BootstrapError):
    """The node process could not be spawned or died before it was ready."""


class NotReadyError(BootstrapError):
    """The node never answered the liveness probe within its deadline."""
