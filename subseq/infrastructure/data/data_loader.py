"""
Loading of result and summary stores written by ResultsDataSaver.
"""

import json
import os
from typing import Any, Dict

import pandas as pd

from subseq.domain.models import ResultsStore, SummaryStore
from subseq.infrastructure.data.data_saver import metadata_path
from subseq.infrastructure.logger import Logger


class ResultsDataLoader:
    """Reads stores back from CSV and their JSON metadata sidecar"""

    def __init__(self):
        self.logger = Logger()

    def _read_metadata(self, file_path: str, kind: str) -> Dict[str, Any]:
        meta_file = metadata_path(file_path)
        if not os.path.exists(meta_file):
            raise FileNotFoundError(f"Metadata file not found: {meta_file}")
        with open(meta_file) as handle:
            metadata = json.load(handle)
        if metadata.get("kind") != kind:
            raise ValueError(
                f"{file_path} holds a '{metadata.get('kind')}' store, expected '{kind}'"
            )
        return metadata

    def load_results_store(self, file_path: str) -> ResultsStore:
        """
        Load a results store.

        Args:
            file_path: CSV written by ``save_results_store``

        Returns:
            ResultsStore: Rows and seed as saved

        Raises:
            FileNotFoundError: If the table or its metadata is missing
            ValueError: If the file holds a different kind of store
        """
        try:
            metadata = self._read_metadata(file_path, "results")
            dtypes = {"method": str}
            if metadata.get("id_is_text", True):
                dtypes["ID"] = str
            data = pd.read_csv(file_path, dtype=dtypes, float_precision="round_trip")
            store = ResultsStore(data, metadata["seed"])
            self.logger.log_matrix_shape(f"Loaded results from {file_path}", data.shape)
            return store

        except Exception as e:
            self.logger.log_error(e, f"Loading results store from {file_path}")
            raise

    def load_summary_store(self, file_path: str) -> SummaryStore:
        """
        Load a summary store with its seed and FDR level.

        Args:
            file_path: CSV written by ``save_summary_store``
        """
        try:
            metadata = self._read_metadata(file_path, "summary")
            data = pd.read_csv(file_path, dtype={"method": str}, float_precision="round_trip")
            summary = SummaryStore(data, metadata["seed"], metadata["fdr_level"])
            self.logger.log_matrix_shape(f"Loaded summary from {file_path}", data.shape)
            return summary

        except Exception as e:
            self.logger.log_error(e, f"Loading summary store from {file_path}")
            raise
