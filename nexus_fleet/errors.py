"""Error types raised by the console core."""


class FleetError(Exception):
    """Base class for all console errors."""
    pass


class InvalidNodeId(FleetError, ValueError):
    """Empty or malformed node identifier, rejected before any engine call."""
    pass


class BuildError(FleetError):
    """The node image could not be built.

    ``build_log`` holds the tail of the engine's build output, verbatim.
    """

    def __init__(self, message: str, build_log: str = ""):
        super().__init__(message)
        self.build_log = build_log


class ContainerRuntimeError(FleetError, RuntimeError):
    """A container engine call failed (engine unreachable, conflict, ...)."""
    pass


class NotFoundError(FleetError):
    """The container, file or schedule entry to act on does not exist."""
    pass


class SchedulerError(FleetError):
    """The scheduling facility is unavailable or an entry could not be written."""
    pass
