#!/usr/bin/env python
"""
Run the Clickstream Lakehouse Pipeline

This script runs every layer under a single run id:
1. Bronze: raw CSV files -> bronze events
2. Silver: bronze events -> cleaned events
3. Gold: cleaned events -> session, user, product, category, brand and time tables

Each table write is an atomic Delta overwrite tagged with the run id. After a
successful run the latest version of every table is logged.

Usage:
    python scripts/run_pipeline.py [--bucket-name BUCKET_NAME] [--region REGION] [--input-path PATH] [--run-id RUN_ID]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from etl.bronze.events_etl import main as bronze_events_main
from etl.silver.events_etl import main as silver_events_main
from etl.gold.session_metrics_etl import main as session_metrics_main
from etl.gold.user_profiles_etl import main as user_profiles_main
from etl.gold.product_performance_etl import main as product_performance_main
from etl.gold.category_brand_etl import main as category_brand_main
from etl.gold.time_patterns_etl import main as time_patterns_main
from etl.common.etl_utils import generate_run_id
from etl.common.spark_session import create_spark_session, get_table_version
from config import S3_BUCKET_NAME, AWS_REGION, LOG_LEVEL, LOG_FORMAT, get_prefix

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format=LOG_FORMAT
)
logger = logging.getLogger(__name__)

PUBLISHED_TABLES: List[Tuple[str, str]] = [
    ("bronze", "events"),
    ("silver", "events"),
    ("gold", "session_metrics"),
    ("gold", "user_profiles"),
    ("gold", "product_performance"),
    ("gold", "category_performance"),
    ("gold", "brand_performance"),
    ("gold", "daily_trends"),
    ("gold", "hourly_patterns"),
    ("gold", "dow_patterns"),
]


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Run the Clickstream Lakehouse Pipeline"
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


def log_table_versions(bucket_name: str) -> Dict[str, Optional[dict]]:
    """
    Log the latest Delta version of every published table.

    Args:
        bucket_name: S3 bucket name

    Returns:
        Dict[str, Optional[dict]]: Version info keyed by "<layer>.<table>"
    """
    spark = create_spark_session(app_name="clickstream_pipeline_versions")

    versions = {}
    try:
        for layer, table in PUBLISHED_TABLES:
            info = get_table_version(spark, get_prefix(layer, table), bucket_name)
            versions[f"{layer}.{table}"] = info
            if info:
                logger.info(
                    f"{layer}.{table}: version {info['version']} (run {info['run_id']})"
                )
            else:
                logger.warning(f"{layer}.{table}: no committed version")
    finally:
        spark.stop()

    return versions


def main(
    bucket_name: str,
    region: str,
    input_path: Optional[str] = None,
    run_id: Optional[str] = None,
) -> int:
    """
    Main function to run the whole pipeline.

    Args:
        bucket_name: S3 bucket name
        region: AWS region
        input_path: Optional path overriding raw file discovery
        run_id: Pipeline run id

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    run_id = run_id or generate_run_id()
    logger.info(f"Starting clickstream pipeline (run {run_id})")

    stages = [
        ("Bronze Events", lambda: bronze_events_main(bucket_name, region, input_path, run_id)),
        ("Silver Events", lambda: silver_events_main(bucket_name, region, run_id)),
        ("Session Metrics", lambda: session_metrics_main(bucket_name, region, run_id)),
        ("User Profiles", lambda: user_profiles_main(bucket_name, region, run_id)),
        ("Product Performance", lambda: product_performance_main(bucket_name, region, run_id)),
        ("Category and Brand", lambda: category_brand_main(bucket_name, region, run_id)),
        ("Time Patterns", lambda: time_patterns_main(bucket_name, region, run_id)),
    ]

    for name, stage in stages:
        logger.info(f"Running {name} ETL")
        exit_code = stage()
        if exit_code != 0:
            logger.error(f"{name} ETL failed, stopping pipeline (run {run_id})")
            return exit_code

    try:
        log_table_versions(bucket_name)
    except Exception as e:
        logger.error(f"Error reading table versions: {str(e)}")
        return 1

    logger.info(f"Clickstream pipeline completed successfully (run {run_id})")
    return 0


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(args.bucket_name, args.region, args.input_path, args.run_id)
    logger.info(f"Clickstream pipeline completed with exit code: {exit_code}")
    sys.exit(exit_code)
