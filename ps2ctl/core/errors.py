"""Domain-specific errors for ps2ctl."""


class Ps2ctlError(Exception):
    """Base error for ps2ctl."""


class CatalogValidationError(Ps2ctlError):
    """Raised when a catalog file does not conform to schema or semantics."""


class CyclicDefinitionError(CatalogValidationError):
    """Raised when command definitions reference each other in a cycle."""

    def __init__(self, chain: tuple[str, ...]) -> None:
        self.chain = chain
        super().__init__(f"Cyclic command definition: {' -> '.join(chain)}")


class CatalogLoadError(Ps2ctlError):
    """Raised when loading catalog sources fails."""


class UnknownCommandError(Ps2ctlError):
    """Raised when a command name is not present in the catalog."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unable to resolve command: {name}")


class CommandArgumentError(Ps2ctlError):
    """Raised when argument bytes cannot be parsed or are out of range."""


class ExecutionError(Ps2ctlError):
    """Base error for an aborted command execution."""

    def __init__(self, message: str, *, command: str | None = None) -> None:
        self.command = command
        super().__init__(message)


class ResponseMismatchError(ExecutionError):
    """Raised when a device byte disagrees with the expected response."""

    def __init__(self, command: str, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Failed response match in '{command}', wanted: {expected:02x} ({expected:08b}) "
            f"got: {actual:02x} ({actual:08b})",
            command=command,
        )


class CommandTimeoutError(ExecutionError):
    """Raised when the device stays silent longer than the reply timeout."""


class CommandAbortedError(ExecutionError):
    """Raised when the operator aborts a running command."""


class EngineBusyError(ExecutionError):
    """Raised when a command is invoked while another one is still running."""


class FramingDesyncError(Ps2ctlError):
    """Raised when the head of the inbound buffer is not a valid frame start."""

    def __init__(self, discarded: bytes) -> None:
        self.discarded = discarded
        super().__init__(f"stream out of sync: {discarded.hex(' ')}")


class TransportError(Ps2ctlError):
    """Base transport error."""


class TransportOpenError(TransportError):
    """Raised when the device file cannot be opened."""


class TransportWriteError(TransportError):
    """Raised when writing to the device fails."""


class TransportReadError(TransportError):
    """Raised when reading from the device fails or the device goes away."""
