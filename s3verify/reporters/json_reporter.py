"""JSON reporter for structured output.

Writes one JSON document per run with per-case status, the failing
phase, the primary error and any cleanup error, suitable for CI
artifacts and for comparing endpoints over time.
"""

import json
from pathlib import Path
from typing import Optional

from s3verify.models import CaseOutcome
from s3verify.reporters.base import Reporter


class JsonReporter(Reporter):
    """JSON reporter for structured output.

    Args:
        output_path: Optional file path to write JSON output
    """

    def __init__(self, output_path: Optional[str] = None):
        self.output_path = output_path
        self.output: Optional[dict] = None

    def on_suite_start(self, config, total: int) -> None:
        """No-op for JSON reporter."""
        pass

    def on_case_start(self, index: int, total: int, case) -> None:
        """No-op for JSON reporter."""
        pass

    def on_case_complete(self, index: int, total: int, outcome: CaseOutcome) -> None:
        """No-op - data comes from the suite result."""
        pass

    def on_suite_complete(self, result) -> dict:
        """Generates and outputs JSON data.

        Args:
            result: The SuiteResult of the run

        Returns:
            The generated JSON data as a dictionary
        """
        self.output = result.to_dict()

        if self.output_path:
            self._write_to_file(self.output)

        return self.output

    def _write_to_file(self, output: dict) -> None:
        path = Path(self.output_path)

        # Create parent directories if needed
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2)
