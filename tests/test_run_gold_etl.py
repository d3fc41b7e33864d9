"""
Tests for the Gold layer runner script.

This module contains tests for scripts/run_gold_etl.py.
"""

import importlib.util
import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Add the project root to the Python path
sys.path.append(str(PROJECT_ROOT))

_spec = importlib.util.spec_from_file_location(
    "run_gold_etl", PROJECT_ROOT / "scripts" / "run_gold_etl.py"
)
run_gold_etl = importlib.util.module_from_spec(_spec)
_spec.loader.exec_module(run_gold_etl)


class TestRunGoldETL(unittest.TestCase):
    """Test cases for the Gold layer runner."""

    def _processes(self, exit_codes):
        return [
            (f"Process {index}", MagicMock(return_value=exit_code))
            for index, exit_code in enumerate(exit_codes)
        ]

    def test_runs_every_process_in_order(self):
        """Every process runs with the shared run id."""
        processes = self._processes([0, 0, 0])

        with patch.object(run_gold_etl, "GOLD_PROCESSES", processes):
            result = run_gold_etl.main("test-bucket", "us-east-1", "run-1")

        self.assertEqual(result, 0)
        for _, process_main in processes:
            process_main.assert_called_once_with("test-bucket", "us-east-1", "run-1")

    def test_stops_at_first_failure(self):
        """Processes after a failure do not run."""
        processes = self._processes([0, 1, 0])

        with patch.object(run_gold_etl, "GOLD_PROCESSES", processes):
            result = run_gold_etl.main("test-bucket", "us-east-1", "run-1")

        self.assertEqual(result, 1)
        processes[2][1].assert_not_called()

    def test_dependency_order(self):
        """Roll-ups run after the tables they read."""
        names = [name for name, _ in run_gold_etl.GOLD_PROCESSES]

        self.assertLess(names.index("Product Performance"), names.index("Category and Brand"))
        self.assertLess(names.index("Session Metrics"), names.index("Time Patterns"))


if __name__ == "__main__":
    unittest.main()
