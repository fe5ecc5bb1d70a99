"""Handler discovery and lookup."""

from typing import Callable, Dict, List, Optional

import pandas as pd

from subseq.domain.exceptions import UnknownHandler

# (counts, treatment, **options) -> table with coefficient and pvalue columns
AnalysisHandler = Callable[..., pd.DataFrame]


class HandlerRegistry:
    """
    Registry mapping string identifiers to analysis handlers.

    Built-in handlers register themselves when
    ``subseq.domain.services.builtin_handlers`` is imported; callers can
    register their own under any unused name.
    """

    def __init__(self):
        self._handlers: Dict[str, AnalysisHandler] = {}

    def register(
        self, name: Optional[str] = None, *, replace: bool = False
    ) -> Callable[[AnalysisHandler], AnalysisHandler]:
        """
        Decorator registering a handler under ``name`` (default: function name).

        Raises:
            ValueError: If the name is taken and ``replace`` is False
        """

        def decorator(func: AnalysisHandler) -> AnalysisHandler:
            key = name or func.__name__
            if key in self._handlers and not replace:
                raise ValueError(f"Handler '{key}' is already registered")
            self._handlers[key] = func
            return func

        return decorator

    def get(self, name: str) -> AnalysisHandler:
        """
        Look up a handler by name.

        Raises:
            UnknownHandler: If no handler has that name
        """
        if name not in self._handlers:
            raise UnknownHandler(name, self.list())
        return self._handlers[name]

    def unregister(self, name: str) -> None:
        self._handlers.pop(name, None)

    def list(self) -> List[str]:
        return list(self._handlers.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._handlers

    def __repr__(self) -> str:
        return f"HandlerRegistry(handlers={self.list()})"


# Global handler registry
handlers = HandlerRegistry()
