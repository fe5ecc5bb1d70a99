"""
Error types raised by the subsampling pipeline.
"""

from typing import Iterable


class SubseqError(Exception):
    """Base class for all subsampling pipeline errors"""


class InvalidProportion(SubseqError, ValueError):
    """A subsampling proportion outside (0, 1]"""

    def __init__(self, proportion):
        self.proportion = proportion
        super().__init__(f"Proportion must be in (0, 1], got {proportion!r}")


class InvalidSeedReuse(SubseqError):
    """A seed that is not a valid integer, or an attempt to change a store's seed"""


class UnknownHandler(SubseqError, KeyError):
    """A handler identifier that is not registered"""

    def __init__(self, name: str, available: Iterable[str]):
        self.name = name
        self.available = list(available)
        super().__init__(
            f"Handler '{name}' not found. Available handlers: {', '.join(self.available)}"
        )

    def __str__(self) -> str:
        return self.args[0]


class HandlerContractViolation(SubseqError):
    """A handler returned output that does not satisfy the result table contract"""

    def __init__(self, handler: str, message: str):
        self.handler = handler
        super().__init__(f"Handler '{handler}': {message}")


class IncompatibleHandlerArguments(SubseqError):
    """Handlers in one call disagree on which extra options they take"""


class OracleJoinFailure(SubseqError):
    """The oracle shares no gene IDs with the results being compared"""


class SubsamplingCancelled(SubseqError):
    """The run was cancelled before all tasks completed"""

    def __init__(self, completed: int, total: int):
        self.completed = completed
        self.total = total
        super().__init__(f"Subsampling cancelled after {completed}/{total} tasks")


class DegenerateMetric(RuntimeWarning):
    """A comparison metric is undefined for a group and reported as NaN"""
