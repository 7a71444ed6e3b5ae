# netprobe/errors.py


class NetprobeError(Exception):
    """Base class for errors raised by netprobe."""


class ProbeError(NetprobeError):
    """A probe could not be issued at all (e.g. the ping binary failed to spawn)."""


class EnvironmentFailure(NetprobeError):
    """The host environment cannot support the requested run (no usable address)."""
