"""
Amazon S3 helpers for the clickstream lakehouse.

The lakehouse lives in a single bucket. These helpers cover what the pipeline
does with it:
- Making sure the bucket exists in the configured region
- Laying down the raw/bronze/silver/gold table prefixes
- Uploading local raw event CSV files to the raw layer
- Listing the raw files the bronze loader picks up

Every helper accepts an existing client so one setup run talks to S3 through a
single connection.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import boto3
from botocore.exceptions import ClientError

from config import LOG_LEVEL, LOG_FORMAT

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

# Error codes returned by head_bucket for a bucket that does not exist yet
MISSING_BUCKET_CODES = {"404", "NoSuchBucket"}


def create_s3_client(region_name: Optional[str] = None) -> Any:
    """
    Create and return an S3 client.

    Args:
        region_name: AWS region name. If None, boto3 resolves it from the environment.

    Returns:
        boto3.client: S3 client
    """
    return boto3.client("s3", region_name=region_name)


def ensure_bucket(
    bucket_name: str, region: Optional[str] = None, s3_client: Any = None
) -> bool:
    """
    Make sure the lakehouse bucket exists, creating it when it is missing.

    Args:
        bucket_name: Lakehouse bucket
        region: Region to create the bucket in
        s3_client: Existing S3 client. If None, one is created for the region.

    Returns:
        bool: True if the bucket was created, False if it already existed

    Raises:
        ClientError: If the bucket cannot be checked or created
    """
    s3_client = s3_client or create_s3_client(region)

    try:
        s3_client.head_bucket(Bucket=bucket_name)
        logger.info(f"Using existing bucket {bucket_name}")
        return False
    except ClientError as e:
        if e.response["Error"]["Code"] not in MISSING_BUCKET_CODES:
            logger.error(f"Cannot access bucket {bucket_name}: {str(e)}")
            raise

    create_args: Dict[str, Any] = {"Bucket": bucket_name}
    # us-east-1 is the default location and rejects an explicit constraint
    if region and region != "us-east-1":
        create_args["CreateBucketConfiguration"] = {"LocationConstraint": region}

    try:
        s3_client.create_bucket(**create_args)
    except ClientError as e:
        logger.error(f"Failed to create bucket {bucket_name}: {str(e)}")
        raise

    logger.info(f"Created bucket {bucket_name} in {region or 'the default region'}")
    return True


def create_layer_prefixes(
    bucket_name: str, prefixes: Iterable[str], s3_client: Any = None
) -> List[str]:
    """
    Create a placeholder object for each layer and table prefix.

    Delta writers create their table directories on first write; the
    placeholders make the empty layout visible before the first run.

    Args:
        bucket_name: Lakehouse bucket
        prefixes: Prefixes such as "raw/events/" or "gold/daily_trends/"
        s3_client: Existing S3 client

    Returns:
        List[str]: Placeholder keys written, in order, without duplicates

    Raises:
        ClientError: If a placeholder cannot be written
    """
    s3_client = s3_client or create_s3_client()
    keys = []

    for prefix in prefixes:
        key = prefix if prefix.endswith("/") else f"{prefix}/"
        if key in keys:
            continue

        try:
            s3_client.put_object(Bucket=bucket_name, Key=key)
        except ClientError as e:
            logger.error(f"Failed to create prefix s3://{bucket_name}/{key}: {str(e)}")
            raise
        keys.append(key)

    logger.info(f"Created {len(keys)} prefixes in bucket {bucket_name}")
    return keys


def upload_event_files(
    data_dir: Union[str, Path],
    bucket_name: str,
    prefix: str,
    s3_client: Any = None,
) -> Dict[str, bool]:
    """
    Upload the raw event CSV files found directly in a local directory.

    Files keep their names under the raw events prefix, so re-uploading a file
    replaces the object instead of adding a duplicate input for the bronze
    loader. Non-CSV files are ignored.

    Args:
        data_dir: Local directory with the monthly event CSV files
        bucket_name: Lakehouse bucket
        prefix: Raw events prefix
        s3_client: Existing S3 client

    Returns:
        Dict[str, bool]: Object key per uploaded file and whether the upload worked

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        raise FileNotFoundError(f"Raw data directory {data_dir} does not exist")

    s3_client = s3_client or create_s3_client()
    prefix = prefix if prefix.endswith("/") else f"{prefix}/"
    results = {}

    for csv_file in sorted(data_dir.glob("*.csv")):
        key = f"{prefix}{csv_file.name}"
        try:
            s3_client.upload_file(str(csv_file), bucket_name, key)
            logger.info(f"Uploaded {csv_file.name} to s3://{bucket_name}/{key}")
            results[key] = True
        except ClientError as e:
            logger.error(f"Failed to upload {csv_file} to s3://{bucket_name}/{key}: {str(e)}")
            results[key] = False

    return results


def list_objects(
    bucket_name: str, prefix: str, suffix: Optional[str] = None, s3_client: Any = None
) -> List[Dict[str, Any]]:
    """
    List all objects under a prefix, following pagination.

    Args:
        bucket_name: Name of the bucket
        prefix: S3 prefix to list
        suffix: Only return keys ending with this suffix (e.g. ".csv")
        s3_client: Existing S3 client

    Returns:
        List[Dict[str, Any]]: Objects with their key, size and last_modified
    """
    s3_client = s3_client or create_s3_client()

    try:
        paginator = s3_client.get_paginator("list_objects_v2")
        objects = []

        for page in paginator.paginate(Bucket=bucket_name, Prefix=prefix):
            for obj in page.get("Contents", []):
                key = obj["Key"]
                # Skip the prefix placeholder objects
                if key.endswith("/"):
                    continue
                if suffix and not key.endswith(suffix):
                    continue
                objects.append(
                    {
                        "key": key,
                        "size": obj["Size"],
                        "last_modified": obj["LastModified"].isoformat(),
                    }
                )

        logger.info(f"Found {len(objects)} objects under s3://{bucket_name}/{prefix}")
        return objects
    except ClientError as e:
        logger.error(f"Failed to list objects under s3://{bucket_name}/{prefix}: {str(e)}")
        raise
