#!/usr/bin/env python
"""
Run Bronze Layer ETL

This script loads the raw clickstream events into the bronze layer.

Usage:
    python scripts/run_bronze_etl.py [--bucket-name BUCKET_NAME] [--region REGION] [--input-path PATH] [--run-id RUN_ID]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from etl.bronze.events_etl import main as events_main
from etl.common.etl_utils import generate_run_id
from config import S3_BUCKET_NAME, AWS_REGION, LOG_LEVEL, LOG_FORMAT

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format=LOG_FORMAT
)
logger = logging.getLogger(__name__)


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Run Bronze Layer ETL"
    )
    parser.add_argument(
        "--bucket-name",
        type=str,
        default=S3_BUCKET_NAME,
        help=f"S3 bucket name (default: {S3_BUCKET_NAME})"
    )
    parser.add_argument(
        "--region",
        type=str,
        default=AWS_REGION,
        help=f"AWS region (default: {AWS_REGION})"
    )
    parser.add_argument(
        "--input-path",
        type=str,
        default=None,
        help="Read raw CSV files from this path instead of the raw events prefix"
    )
    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Pipeline run id (default: generated)"
    )

    return parser.parse_args()


def main(
    bucket_name: str,
    region: str,
    input_path: Optional[str] = None,
    run_id: Optional[str] = None,
) -> int:
    """
    Main function to run the Bronze layer ETL.

    Args:
        bucket_name: S3 bucket name
        region: AWS region
        input_path: Optional path overriding raw file discovery
        run_id: Pipeline run id

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    run_id = run_id or generate_run_id()
    logger.info(f"Starting Bronze layer ETL (run {run_id})")

    logger.info("Running Events ETL")
    events_exit_code = events_main(bucket_name, region, input_path, run_id)
    if events_exit_code != 0:
        logger.error("Events ETL failed")
        return events_exit_code

    logger.info("Bronze layer ETL completed successfully")
    return 0


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(args.bucket_name, args.region, args.input_path, args.run_id)
    logger.info(f"Bronze layer ETL completed with exit code: {exit_code}")
    sys.exit(exit_code)
