"""Structured logging for the estimate import service"""

import logging
import json
from datetime import datetime
from typing import Dict, Any
from pathlib import Path


class StructuredLogger:
    """Structured logger for the estimate import agent"""

    def __init__(self, name: str = "estimate_import_agent"):
        self.agent = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        if not self.logger.handlers:
            self._configure_handlers()

    def _configure_handlers(self) -> None:
        """Configure logger handlers for console and file outputs."""
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        # File handlers
        log_dir = Path(__file__).resolve().parents[2] / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        info_log_path = log_dir / "estimate_import_service.log"
        error_log_path = log_dir / "estimate_import_service_error.log"

        info_handler = logging.FileHandler(info_log_path, encoding="utf-8")
        info_handler.setLevel(logging.INFO)
        info_handler.setFormatter(formatter)

        error_handler = logging.FileHandler(error_log_path, encoding="utf-8")
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)

        self.logger.addHandler(info_handler)
        self.logger.addHandler(error_handler)
        self.logger.propagate = False

    def log_step(self, step: str, data: Dict[str, Any] = None):
        """Log a processing step"""
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "step": step,
            "agent": self.agent
        }
        if data:
            log_data.update(data)

        self.logger.info(f"STEP: {json.dumps(log_data, default=str)}")

    def log_warning(self, warning: str, data: Dict[str, Any] = None):
        """Log a recoverable condition"""
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "warning": warning,
            "agent": self.agent
        }
        if data:
            log_data.update(data)

        self.logger.warning(f"WARNING: {json.dumps(log_data, default=str)}")

    def log_error(self, error_type: str, data: Dict[str, Any] = None):
        """Log an error"""
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "error": error_type,
            "agent": self.agent
        }
        if data:
            log_data.update(data)

        self.logger.error(f"ERROR: {json.dumps(log_data, default=str)}")

    def log_import(self, import_id: str, file_type: str, file_name: str = None):
        """Log import start"""
        self.log_step("import_started", {
            "import_id": import_id,
            "file_type": file_type,
            "file_name": file_name
        })

    def log_validation(self, import_id: str, is_valid: bool, score: int):
        """Log validation completion"""
        self.log_step("import_validation_completed", {
            "import_id": import_id,
            "is_valid": is_valid,
            "score": score
        })

    def log_reconciliation(self, import_id: str, data: Dict[str, Any]):
        """Log reconciliation outcome"""
        payload = {"import_id": import_id}
        payload.update(data)
        self.log_step("reconciliation_completed", payload)


# Global logger instance
logger = StructuredLogger()
