"""
Persistence of result and summary stores.
"""

import json
import os
from typing import Any, Dict

import pandas as pd

from subseq.domain.models import ResultsStore, SummaryStore
from subseq.infrastructure.logger import Logger

METADATA_SUFFIX = ".meta.json"


def metadata_path(file_path: str) -> str:
    """Sidecar JSON file holding a store's metadata"""
    return f"{file_path}{METADATA_SUFFIX}"


class ResultsDataSaver:
    """Writes stores as CSV tables with a JSON metadata sidecar"""

    def __init__(self):
        self.logger = Logger()

    def _write(self, data: pd.DataFrame, metadata: Dict[str, Any], file_path: str) -> None:
        try:
            directory = os.path.dirname(file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            data.to_csv(file_path, index=False)
            with open(metadata_path(file_path), "w") as handle:
                json.dump(metadata, handle, indent=2)

            self.logger.log_save(file_path)

        except Exception as e:
            self.logger.log_error(e, f"Saving store to {file_path}")
            raise

    def save_results_store(self, store: ResultsStore, file_path: str) -> None:
        """
        Save a results store.

        Args:
            store: Results of a subsampling run
            file_path: Output CSV path; metadata goes to ``<file_path>.meta.json``
        """
        metadata = {
            "kind": "results",
            "seed": store.seed,
            "id_is_text": not pd.api.types.is_numeric_dtype(store.data["ID"]),
        }
        self._write(store.data, metadata, file_path)

    def save_summary_store(self, summary: SummaryStore, file_path: str) -> None:
        """
        Save a summary store with its seed and FDR level.

        Args:
            summary: Summary metrics
            file_path: Output CSV path; metadata goes to ``<file_path>.meta.json``
        """
        metadata = {"kind": "summary", **summary.metadata}
        self._write(summary.data, metadata, file_path)
