"""
Centralized logging for the subsampling pipeline.
"""

import logging
import os
from typing import Optional, Tuple

LOGGER_NAME = "subseq"


class Logger:
    """Centralized logging for the subsampling pipeline

    Every service creates its own ``Logger``; they all share the ``subseq``
    logging logger. The console handler is attached once, and a file handler
    added by one instance stays attached until ``close_files`` is called.
    """

    def __init__(self, log_file: Optional[str] = None, level: Optional[int] = None):
        """Initialize logger with optional file output"""
        self.logger = logging.getLogger(LOGGER_NAME)
        self.formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

        if not self.logger.handlers:
            self.logger.setLevel(logging.INFO if level is None else level)
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(self.formatter)
            self.logger.addHandler(console_handler)
        elif level is not None:
            self.logger.setLevel(level)

        if log_file:
            self.add_file(log_file)

    def add_file(self, log_file: str) -> None:
        """Also write records to ``log_file``; a file already attached is skipped"""
        path = os.path.abspath(log_file)
        for handler in self.logger.handlers:
            if isinstance(handler, logging.FileHandler) and handler.baseFilename == path:
                return
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(self.formatter)
        self.logger.addHandler(file_handler)

    def close_files(self) -> None:
        """Detach and close every file handler"""
        for handler in list(self.logger.handlers):
            if isinstance(handler, logging.FileHandler):
                self.logger.removeHandler(handler)
                handler.close()

    def log_step(self, step: str, details: str) -> None:
        """Log a processing step with details"""
        self.logger.info(f"🔍 {step}: {details}")

    def log_error(self, error: Exception, context: str) -> None:
        """Log an error with context"""
        self.logger.error(f"❌ Error in {context}: {str(error)}", exc_info=True)

    def log_warning(self, warning: str) -> None:
        """Log a warning message"""
        self.logger.warning(f"⚠️ {warning}")

    def log_success(self, message: str) -> None:
        """Log a success message"""
        self.logger.info(f"✅ {message}")

    def log_save(self, file_path: str) -> None:
        """Log a file save operation"""
        self.logger.info(f"💾 Saved to: {file_path}")

    def log_matrix_shape(self, matrix_name: str, shape: Tuple[int, ...]) -> None:
        """Log matrix shape information"""
        self.logger.info(f"📊 {matrix_name} shape: {shape}")

    def log_progress(self, done: int, total: int, label: str) -> None:
        """Log completion of one unit of work"""
        self.logger.info(f"⏱️ [{done}/{total}] {label}")
