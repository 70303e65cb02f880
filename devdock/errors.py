"""Exceptions raised by devdock components.

Every lifecycle step converts these into a step outcome; none of them is
meant to reach the user as a traceback.
"""


class DevdockError(Exception):
    """Base exception for devdock operations."""


class RuntimeUnavailable(DevdockError):
    """The container engine could not be reached."""


class ContainerOperationError(DevdockError):
    """The engine was reachable but rejected the operation."""


class ContainerNotFound(ContainerOperationError):
    """No container with the requested name exists."""


class PreconditionFailed(DevdockError):
    """A prerequisite was not met, so the step was not attempted."""


class KeyFileNotFound(DevdockError):
    """The SSH key to inject does not exist."""


class HostFileError(DevdockError):
    """The host resolver file could not be read or written."""
