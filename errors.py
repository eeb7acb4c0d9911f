"""Error taxonomy shared by the engine, the bridge and the test harness."""


class TurtleError(Exception):
    pass


class ExecutionError(TurtleError):
    """The command stream could not be produced or applied."""

    def __init__(self, message: str, line: int | None = None):
        super().__init__(message)
        self.line = line

    def __str__(self) -> str:
        msg = super().__str__()
        if self.line is not None:
            return f"Error on line {self.line}: {msg}"
        return msg


class CaptureError(TurtleError):
    """A snapshot of the canvas could not be taken."""


class ComparisonError(TurtleError):
    """The scoring pipeline failed (unreadable reference, size mismatch...)."""


class EngineNotReadyError(TurtleError):
    pass
