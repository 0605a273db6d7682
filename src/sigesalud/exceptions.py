"""Exception hierarchy for the reporting core."""


class SigesaludError(Exception):
    """Base class for errors raised by this package."""


class DataSourceError(SigesaludError):
    """A static data file exists but cannot be parsed into records."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed data file {path}: {reason}")


class BackendInitError(SigesaludError):
    """The storage backend could not be opened or created."""


class RosterInputError(SigesaludError):
    """Staffing quota or facility input for the roster generator is unusable."""


class UnknownOperationError(SigesaludError):
    """A caller asked for an operation name that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown operation: {name}")
