"""
Application service orchestrating a subsampling run.
"""

import numbers
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from subseq.domain.exceptions import SubsamplingCancelled
from subseq.domain.models import ResultsStore, SubsampleConfig
from subseq.domain.services.handler_dispatcher import HandlerDispatcher, HandlerSpec, Methods
from subseq.domain.services.results_store import ResultsStoreBuilder, concat_rows
from subseq.domain.services.seed_manager import SeedManager
from subseq.domain.services.subsampler import CountMatrix, Subsampler, as_count_frame
from subseq.infrastructure.logger import Logger

Task = Tuple[float, int]
ProgressCallback = Callable[[int, int, Task], None]


class SubsamplingService:
    """Runs every (proportion, replication) task and collects the result rows"""

    def __init__(
        self,
        seed_manager: Optional[SeedManager] = None,
        dispatcher: Optional[HandlerDispatcher] = None,
        builder: Optional[ResultsStoreBuilder] = None,
    ):
        self.logger = Logger()
        self.seed_manager = seed_manager if seed_manager is not None else SeedManager()
        self.subsampler = Subsampler(self.seed_manager)
        self.dispatcher = dispatcher if dispatcher is not None else HandlerDispatcher()
        self.builder = builder if builder is not None else ResultsStoreBuilder()

    def run(
        self,
        matrix: CountMatrix,
        methods: Methods,
        treatment: Sequence,
        config: SubsampleConfig,
        options: Optional[Dict[str, Any]] = None,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        return_partial: bool = False,
    ) -> ResultsStore:
        """
        Subsample, analyse and collect results for the whole run.

        Every argument is validated before the first task starts. A failing
        handler aborts the run.

        Args:
            matrix: Genes x samples counts
            methods: Handler names, callables, or a name -> handler mapping
            treatment: Condition label per sample
            config: Proportions, replications, seed and worker count
            options: Extra keyword arguments passed to every handler
            progress: Called as progress(done, total, (proportion, replication))
            cancel_event: Checked between task completions
            return_partial: On cancellation, return completed tasks instead of raising

        Returns:
            ResultsStore: Rows in (proportion, replication, method) order
        """
        options = dict(options or {})

        self.logger.log_step("Validation", "Checking run configuration")
        config.validate()
        frame = as_count_frame(matrix)
        self.logger.log_matrix_shape("Count matrix", frame.shape)
        if len(treatment) != frame.shape[1]:
            raise ValueError(
                f"Treatment has {len(treatment)} entries but the matrix has "
                f"{frame.shape[1]} samples"
            )
        specs = self.dispatcher.resolve(methods)
        self.dispatcher.check_options(specs, options)
        seed = self.seed_manager.resolve_seed(config.seed)

        tasks = config.tasks
        self.logger.log_step(
            "Subsampling",
            f"{len(tasks)} task(s) x {len(specs)} method(s) "
            f"[{', '.join(s.name for s in specs)}], seed {seed}, {config.n_jobs} worker(s)",
        )

        def run_task(task: Task) -> pd.DataFrame:
            proportion, replication = task
            return self._run_task(
                frame, treatment, specs, options, seed, proportion, replication, config
            )

        if config.n_jobs == 1:
            completed = self._run_serial(tasks, run_task, progress, cancel_event, return_partial)
        else:
            completed = self._run_parallel(
                tasks, run_task, config.n_jobs, progress, cancel_event, return_partial
            )

        frames = [completed[i] for i in sorted(completed)]
        store = self.builder.assemble(frames, seed)
        self.logger.log_success(f"Subsampling finished: {len(store)} result rows")
        return store

    def _run_task(
        self,
        frame: pd.DataFrame,
        treatment: Sequence,
        specs: List[HandlerSpec],
        options: Dict[str, Any],
        seed: int,
        proportion: float,
        replication: int,
        config: SubsampleConfig,
    ) -> pd.DataFrame:
        """Subsample once, apply every method to that same matrix"""
        sub, depth = self.subsampler.subsample_frame(frame, proportion, seed, replication)
        groups = []
        for spec in specs:
            table = self.dispatcher.run(spec, sub, treatment, options)
            groups.append(
                self.builder.group_rows(
                    table, spec.name, proportion, replication, depth, config.qvalue_lambdas
                )
            )
        return concat_rows(groups)

    def _report(self, done: int, total: int, task: Task, progress: Optional[ProgressCallback]):
        self.logger.log_progress(
            done, total, f"proportion {task[0]}, replication {task[1]}"
        )
        if progress is not None:
            progress(done, total, task)

    def _cancelled(
        self,
        completed: Dict[int, pd.DataFrame],
        total: int,
        return_partial: bool,
    ) -> Dict[int, pd.DataFrame]:
        self.logger.log_warning(f"Cancelled after {len(completed)}/{total} task(s)")
        if not return_partial:
            raise SubsamplingCancelled(len(completed), total)
        return completed

    def _run_serial(
        self,
        tasks: List[Task],
        run_task: Callable[[Task], pd.DataFrame],
        progress: Optional[ProgressCallback],
        cancel_event: Optional[threading.Event],
        return_partial: bool,
    ) -> Dict[int, pd.DataFrame]:
        completed: Dict[int, pd.DataFrame] = {}
        for index, task in enumerate(tasks):
            if cancel_event is not None and cancel_event.is_set():
                return self._cancelled(completed, len(tasks), return_partial)
            completed[index] = run_task(task)
            self._report(len(completed), len(tasks), task, progress)
        return completed

    def _run_parallel(
        self,
        tasks: List[Task],
        run_task: Callable[[Task], pd.DataFrame],
        n_jobs: int,
        progress: Optional[ProgressCallback],
        cancel_event: Optional[threading.Event],
        return_partial: bool,
    ) -> Dict[int, pd.DataFrame]:
        completed: Dict[int, pd.DataFrame] = {}
        executor = ThreadPoolExecutor(max_workers=n_jobs)
        try:
            pending = {executor.submit(run_task, task): i for i, task in enumerate(tasks)}
            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    index = pending.pop(future)
                    # Re-raises the first handler failure and aborts the run
                    completed[index] = future.result()
                    self._report(len(completed), len(tasks), tasks[index], progress)
                if pending and cancel_event is not None and cancel_event.is_set():
                    return self._cancelled(completed, len(tasks), return_partial)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)
        return completed


def subsample(
    matrix: CountMatrix,
    proportions: Sequence[float],
    methods: Methods,
    treatment: Sequence,
    replications: Union[int, Sequence[int]] = 1,
    seed: Optional[int] = None,
    n_jobs: int = 1,
    progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    return_partial: bool = False,
    **options: Any,
) -> ResultsStore:
    """
    Subsample a count matrix at each proportion and run every method on it.

    Args:
        matrix: Genes x samples counts (DataFrame indexed by gene ID, or array)
        proportions: Fractions of reads to keep, each in (0, 1]
        methods: Handler names, callables, or a name -> handler mapping
        treatment: Condition label per sample
        replications: Number of draws per proportion, or explicit indices
        seed: Run seed; drawn at random when None
        n_jobs: Worker threads
        progress: Called after each completed (proportion, replication) task
        cancel_event: Set to stop between tasks
        return_partial: On cancellation, return the finished tasks
        **options: Extra keyword arguments for the handlers

    Returns:
        ResultsStore: Long-format results carrying the run seed
    """
    config = SubsampleConfig(
        proportions=[proportions] if isinstance(proportions, numbers.Real) else list(proportions),
        replications=replications,
        seed=seed,
        n_jobs=n_jobs,
    )
    return SubsamplingService().run(
        matrix,
        methods,
        treatment,
        config,
        options=options,
        progress=progress,
        cancel_event=cancel_event,
        return_partial=return_partial,
    )
