#!/usr/bin/env python
"""
Run All Gold Layer ETL Processes

This script runs all Gold layer ETL processes in dependency order:
1. Session Metrics ETL
2. User Profiles ETL
3. Product Performance ETL
4. Category and Brand ETL (reads product performance)
5. Time Patterns ETL (reads session metrics)

The run stops at the first failing process; tables written by earlier
processes keep their new version, later ones keep their previous version.

Usage:
    python scripts/run_gold_etl.py [--bucket-name BUCKET_NAME] [--region REGION] [--run-id RUN_ID]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional, Tuple

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from etl.gold.session_metrics_etl import main as session_metrics_main
from etl.gold.user_profiles_etl import main as user_profiles_main
from etl.gold.product_performance_etl import main as product_performance_main
from etl.gold.category_brand_etl import main as category_brand_main
from etl.gold.time_patterns_etl import main as time_patterns_main
from etl.common.etl_utils import generate_run_id
from config import S3_BUCKET_NAME, AWS_REGION, LOG_LEVEL, LOG_FORMAT

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format=LOG_FORMAT
)
logger = logging.getLogger(__name__)

GOLD_PROCESSES: List[Tuple[str, Callable[[str, str, Optional[str]], int]]] = [
    ("Session Metrics", session_metrics_main),
    ("User Profiles", user_profiles_main),
    ("Product Performance", product_performance_main),
    ("Category and Brand", category_brand_main),
    ("Time Patterns", time_patterns_main),
]


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Run All Gold Layer ETL Processes"
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
        "--run-id",
        type=str,
        default=None,
        help="Pipeline run id (default: generated)"
    )

    return parser.parse_args()


def main(bucket_name: str, region: str, run_id: Optional[str] = None) -> int:
    """
    Main function to run all Gold layer ETL processes.

    Args:
        bucket_name: S3 bucket name
        region: AWS region
        run_id: Pipeline run id

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    run_id = run_id or generate_run_id()
    logger.info(f"Starting all Gold layer ETL processes (run {run_id})")

    for name, process_main in GOLD_PROCESSES:
        logger.info(f"Running {name} ETL")
        exit_code = process_main(bucket_name, region, run_id)
        if exit_code != 0:
            logger.error(f"{name} ETL failed")
            return exit_code

    logger.info("All Gold layer ETL processes completed successfully")
    return 0


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(args.bucket_name, args.region, args.run_id)
    logger.info(f"All Gold layer ETL processes completed with exit code: {exit_code}")
    sys.exit(exit_code)
