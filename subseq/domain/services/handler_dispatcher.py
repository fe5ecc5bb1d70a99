"""
Invocation of analysis handlers and normalisation of their output.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Set, Union

import numpy as np
import pandas as pd

from subseq.domain.exceptions import HandlerContractViolation, IncompatibleHandlerArguments
from subseq.domain.services import builtin_handlers  # noqa: F401  registers built-ins
from subseq.domain.services.handler_registry import AnalysisHandler, HandlerRegistry, handlers
from subseq.infrastructure.logger import Logger

MethodSpec = Union[str, AnalysisHandler]
Methods = Union[MethodSpec, Sequence[MethodSpec], Mapping[str, MethodSpec]]

REQUIRED_FIELDS = ["coefficient", "pvalue"]

# Columns the pipeline owns; a handler's own values for them are replaced
RESERVED_FIELDS = ["depth", "proportion", "replication", "method", "qvalue"]


@dataclass
class HandlerSpec:
    """A resolved handler and the extra options its signature declares"""

    name: str
    func: AnalysisHandler
    accepted: Set[str] = field(default_factory=set)
    required: Set[str] = field(default_factory=set)
    accepts_any: bool = False

    @classmethod
    def from_callable(cls, name: str, func: AnalysisHandler) -> "HandlerSpec":
        try:
            params = list(inspect.signature(func).parameters.values())
        except (TypeError, ValueError):
            return cls(name, func)

        # Counts and treatment fill the first two positional slots; *args takes both
        slots = 2
        named = []
        for p in params:
            if slots and p.kind == inspect.Parameter.VAR_POSITIONAL:
                slots = 0
            elif slots and p.kind in (
                inspect.Parameter.POSITIONAL_ONLY,
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
            ):
                slots -= 1
            elif p.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY):
                named.append(p)
        return cls(
            name,
            func,
            accepted={p.name for p in named},
            required={p.name for p in named if p.default is inspect.Parameter.empty},
            accepts_any=any(p.kind == inspect.Parameter.VAR_KEYWORD for p in params),
        )

    def accepts(self, option: str) -> bool:
        return self.accepts_any or option in self.accepted


class HandlerDispatcher:
    """Resolves handlers, checks their options and enforces the result contract"""

    def __init__(self, registry: HandlerRegistry = None):
        self.logger = Logger()
        self.registry = registry if registry is not None else handlers

    def resolve(self, methods: Methods) -> List[HandlerSpec]:
        """
        Turn names, callables, or a name -> handler mapping into HandlerSpecs.

        Raises:
            UnknownHandler: If a string names no registered handler
            ValueError: If no methods are given or two share a name
        """
        if isinstance(methods, Mapping):
            named = list(methods.items())
        else:
            if isinstance(methods, str) or callable(methods):
                methods = [methods]
            named = [(self._name_of(m), m) for m in methods]

        if not named:
            raise ValueError("At least one method is required")

        specs = []
        for name, method in named:
            func = self.registry.get(method) if isinstance(method, str) else method
            if not callable(func):
                raise TypeError(f"Method '{name}' is not callable")
            specs.append(HandlerSpec.from_callable(name, func))

        names = [s.name for s in specs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate method names: {duplicates}")
        return specs

    @staticmethod
    def _name_of(method: MethodSpec) -> str:
        if isinstance(method, str):
            return method
        return getattr(method, "__name__", type(method).__name__)

    def check_options(self, specs: List[HandlerSpec], options: Dict[str, Any]) -> None:
        """
        Ensure every handler can be called with exactly these options.

        Raises:
            IncompatibleHandlerArguments: If a handler needs an option that is
                missing, or an option is given that some handler cannot take
        """
        for spec in specs:
            missing = sorted(spec.required - set(options))
            if missing:
                raise IncompatibleHandlerArguments(
                    f"Handler '{spec.name}' requires options {missing}"
                )

        for option in options:
            refusing = [s.name for s in specs if not s.accepts(option)]
            if refusing:
                raise IncompatibleHandlerArguments(
                    f"Option '{option}' is not accepted by {refusing}; "
                    "run these handlers in separate calls and combine the results"
                )

    def run(
        self,
        spec: HandlerSpec,
        counts: pd.DataFrame,
        treatment: Sequence,
        options: Dict[str, Any],
    ) -> pd.DataFrame:
        """
        Call one handler and normalise its output.

        Returns:
            pd.DataFrame: ID, count, coefficient, pvalue, then any extra
                columns the handler produced
        """
        try:
            raw = spec.func(counts, treatment, **options)
        except Exception as e:
            self.logger.log_error(e, f"Handler '{spec.name}'")
            raise
        return self.normalize(spec.name, raw, counts.index)

    def normalize(self, name: str, raw: Any, gene_ids: pd.Index) -> pd.DataFrame:
        """
        Validate a handler's table and fill in ID and count.

        Raises:
            HandlerContractViolation: If coefficient or pvalue is missing, or
                the row count differs from the gene count without an ID column
        """
        if raw is None:
            raise HandlerContractViolation(name, "returned no result table")
        table = raw if isinstance(raw, pd.DataFrame) else pd.DataFrame(raw)

        missing = [f for f in REQUIRED_FIELDS if f not in table.columns]
        if missing:
            raise HandlerContractViolation(
                name, f"result is missing required field(s) {missing}"
            )

        table = table.reset_index(drop=True)
        if "ID" not in table.columns:
            if len(table) != len(gene_ids):
                raise HandlerContractViolation(
                    name,
                    f"returned {len(table)} rows for {len(gene_ids)} genes "
                    "without an explicit ID column",
                )
            table.insert(0, "ID", gene_ids.to_numpy())
        if "count" not in table.columns:
            table["count"] = np.nan

        overridden = [c for c in RESERVED_FIELDS if c in table.columns]
        if overridden:
            self.logger.log_warning(
                f"Handler '{name}' returned reserved column(s) {overridden}; they are replaced"
            )
            table = table.drop(columns=overridden)

        core = ["ID", "count", "coefficient", "pvalue"]
        extras = [c for c in table.columns if c not in core]
        return table[core + extras]
