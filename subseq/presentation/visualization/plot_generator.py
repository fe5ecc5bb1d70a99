"""
Visualization of subsampling summaries.
"""

from typing import List, Optional, Tuple

import matplotlib.pyplot as plt
import seaborn as sns

from subseq.domain.models import SummaryStore
from subseq.infrastructure.logger import Logger

# (column, axis label) for each panel, in reading order
PANELS: List[Tuple[str, str]] = [
    ("significant", "# of significant genes"),
    ("estFDP", "Estimated FDP"),
    ("spearman", "Spearman correlation with oracle"),
    ("MSE", "Mean squared error vs. oracle"),
]


class PlotGenerator:
    """Depth-indexed panels of a summary store"""

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger if logger is not None else Logger()

    def create_summary_figure(
        self,
        summary: SummaryStore,
        output_path: Optional[str] = None,
        log_depth: bool = True,
    ) -> plt.Figure:
        """
        Draw significant genes, estFDP, Spearman correlation and MSE against depth.

        Args:
            summary: Summary metrics, one line per method
            output_path: Where to save the figure; not saved when None
            log_depth: Put depth on a log10 axis

        Returns:
            plt.Figure: The 2x2 figure
        """
        data = summary.data
        if data.empty:
            raise ValueError("Cannot plot an empty summary")

        sns.set_style("whitegrid")
        fig, axes = plt.subplots(2, 2, figsize=(11, 8), sharex=True)

        for ax, (column, label) in zip(axes.flat, PANELS):
            sns.lineplot(
                data=data,
                x="depth",
                y=column,
                hue="method",
                marker="o",
                errorbar=None,
                ax=ax,
            )
            ax.set_ylabel(label)
            ax.set_xlabel("Depth")
            if log_depth:
                ax.set_xscale("log")
            if column == "estFDP":
                ax.axhline(summary.fdr_level, color="red", linestyle="--", linewidth=1)

        fig.suptitle(f"Subsampling summary (FDR level {summary.fdr_level}, seed {summary.seed})")
        fig.tight_layout()

        if output_path:
            fig.savefig(output_path, dpi=300, bbox_inches="tight")
            self.logger.log_save(output_path)

        return fig


def plot(summary: SummaryStore, output_path: Optional[str] = None) -> plt.Figure:
    """Four depth-indexed panels: significant genes, estFDP, Spearman, MSE"""
    return PlotGenerator().create_summary_figure(summary, output_path)
