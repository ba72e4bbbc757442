# src/loadbench/errors.py


class LoadBenchError(Exception):
    """Base class for every error raised by the load bench."""


class ConfigError(LoadBenchError, ValueError):
    pass


class BuildError(LoadBenchError):
    """The client executable could not be built or found. Fatal to the run."""


class ConnectError(LoadBenchError):
    """Connecting to the broker failed, or the connection was lost.
    Fatal to the client process, never retried."""


class PublishError(LoadBenchError):
    pass


class SubscribeError(LoadBenchError):
    pass


class SpawnError(LoadBenchError):
    """A client process could not be started."""


class JoinTimeoutError(LoadBenchError):
    """A client process did not exit within its allotted wait."""
