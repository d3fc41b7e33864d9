# tests/conftest.py
import sys
from pathlib import Path

import pytest
from pyspark.sql import SparkSession

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))


@pytest.fixture(scope="session")
def spark_session(tmp_path_factory):
    """
    Creates a standard SparkSession configured for local testing,
    without Delta Lake specific configurations.
    """
    # Temporary warehouse, cleaned up by pytest after the session
    warehouse_dir = tmp_path_factory.mktemp("spark_warehouse")

    spark = (
        SparkSession.builder
        .appName("pytest-local-spark-unit-tests")
        .master("local[1]")
        .config("spark.sql.shuffle.partitions", "2")  # Keep low for local testing
        .config("spark.sql.warehouse.dir", str(warehouse_dir))
        .config("spark.sql.ansi.enabled", "false")
        .config("spark.ui.showConsoleProgress", "false")
        .getOrCreate()
    )

    yield spark

    spark.stop()


@pytest.fixture
def data_paths(tmp_path):
    """
    Provides temporary paths using pytest's tmp_path fixture.
    """
    paths = {
        "raw": tmp_path / "raw",
        "generic_output": tmp_path / "output",
    }
    for path in paths.values():
        path.mkdir(parents=True, exist_ok=True)
    return paths


@pytest.fixture
def create_csv_file(data_paths):
    """Helper fixture to create sample CSV files in a temporary 'raw' directory."""
    def _create_csv(filename, data, headers):
        if not isinstance(data, list):
            raise TypeError("Input 'data' must be a list of sequences (tuples/lists).")
        if data and not isinstance(data[0], (list, tuple)):
            raise TypeError("Elements inside 'data' must be sequences (tuples/lists).")

        filepath = data_paths["raw"] / filename
        with open(filepath, "w", newline="") as f:
            f.write(",".join(map(str, headers)) + "\n")
            for row in data:
                f.write(",".join("" if value is None else str(value) for value in row) + "\n")
        return str(filepath)
    return _create_csv
