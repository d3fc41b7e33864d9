#!/usr/bin/env python
"""
S3 Bucket Structure Setup Script

This script sets up the storage for the clickstream lakehouse.
It creates a single bucket with the prefix structure for the raw, bronze, silver
and gold layers, and the Glue databases the tables are registered in.

The script also uploads the raw event CSV files to the raw layer.

Usage:
    python setup_s3_structure.py [--bucket-name clickstream-lakehouse-bucket] [--region eu-west-1]

The bucket name and region can also be set using environment variables:
    - ECOM_S3_BUCKET_NAME: S3 bucket name
    - ECOM_AWS_REGION: AWS region
    - ECOM_RAW_DATA_DIR: local directory holding the raw CSV files

Requirements:
    - AWS credentials configured
    - boto3 package installed
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Optional

import sys

from botocore.exceptions import ClientError

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[2]))

from etl.common.s3_utils import (
    create_s3_client,
    ensure_bucket,
    create_layer_prefixes,
    upload_event_files,
)
from etl.common.glue_catalog import create_all_databases
from config import (
    AWS_REGION,
    S3_BUCKET_NAME,
    S3_PREFIXES,
    RAW_DATA_DIR,
    LOG_LEVEL,
    LOG_FORMAT,
    get_prefix,
)

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL), format=LOG_FORMAT)
logger = logging.getLogger(__name__)


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Set up S3 bucket structure for the clickstream lakehouse"
    )
    parser.add_argument(
        "--bucket-name",
        default=S3_BUCKET_NAME,
        help=f"Name of the S3 bucket to create (default: {S3_BUCKET_NAME})",
    )
    parser.add_argument(
        "--region",
        default=AWS_REGION,
        help=f"AWS region where the bucket should be created (default: {AWS_REGION})",
    )
    parser.add_argument(
        "--data-dir",
        default=RAW_DATA_DIR,
        help=f"Directory containing the raw CSV files to upload (default: {RAW_DATA_DIR})",
    )
    parser.add_argument(
        "--skip-upload", action="store_true", help="Skip uploading data files"
    )
    parser.add_argument(
        "--skip-catalog",
        action="store_true",
        help="Skip creating the Glue databases",
    )

    return parser.parse_args()


def upload_raw_events(bucket_name: str, data_dir: str, s3_client: Any = None) -> bool:
    """
    Upload the raw event CSV files to the raw layer.

    Args:
        bucket_name: Name of the S3 bucket
        data_dir: Directory containing the raw CSV files
        s3_client: Existing S3 client

    Returns:
        bool: True if every file was uploaded, False otherwise
    """
    try:
        results = upload_event_files(
            data_dir, bucket_name, get_prefix("raw", "events"), s3_client=s3_client
        )
    except FileNotFoundError as e:
        logger.error(str(e))
        return False

    if not results:
        logger.warning(f"No raw event CSV files found in {data_dir}")
        return True

    failed = [key for key, uploaded in results.items() if not uploaded]
    if failed:
        logger.error(f"Failed to upload {len(failed)} raw file(s): {', '.join(failed)}")
        return False

    logger.info(f"Uploaded {len(results)} raw file(s) to the raw layer")
    return True


def main(
    bucket_name: str,
    region: Optional[str] = None,
    data_dir: str = RAW_DATA_DIR,
    skip_upload: bool = False,
    create_catalog: bool = True,
) -> int:
    """
    Main function to set up the lakehouse storage.

    Args:
        bucket_name: Name of the S3 bucket to create
        region: AWS region where the bucket should be created
        data_dir: Directory containing the raw CSV files to upload
        skip_upload: Whether to skip uploading data files
        create_catalog: Whether to create the Glue databases

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    logger.info(f"Setting up lakehouse storage in {bucket_name}")

    s3_client = create_s3_client(region)

    # Step 1: Bucket and layer prefixes
    try:
        ensure_bucket(bucket_name, region, s3_client=s3_client)
        create_layer_prefixes(bucket_name, S3_PREFIXES, s3_client=s3_client)
    except ClientError as e:
        logger.error(f"Error preparing bucket {bucket_name}: {str(e)}")
        return 1

    # Step 2: Raw event files (if not skipped)
    if not skip_upload and not upload_raw_events(bucket_name, data_dir, s3_client):
        return 1

    # Step 3: Glue databases (if not skipped)
    if create_catalog:
        failed_layers = [
            layer for layer, created in create_all_databases(region).items() if not created
        ]
        if failed_layers:
            logger.error(f"Failed to create Glue databases for: {', '.join(failed_layers)}")
            return 1

    logger.info(f"Successfully set up lakehouse storage in {bucket_name}")
    return 0


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(
        bucket_name=args.bucket_name,
        region=args.region,
        data_dir=args.data_dir,
        skip_upload=args.skip_upload,
        create_catalog=not args.skip_catalog,
    )
    sys.exit(exit_code)
