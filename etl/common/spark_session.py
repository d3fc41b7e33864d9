"""
Spark session utility for the clickstream lakehouse.

This module provides functions to create and configure Spark sessions with Delta Lake
for the clickstream lakehouse. It includes:
- Creating a Spark session with appropriate configurations
- Setting up Delta Lake integration
- Reading and writing Delta tables, including historic snapshots
- Looking up the latest committed version of a Delta table
"""

import logging
from typing import Dict, List, Optional, Any, Union

from pyspark.sql import DataFrame, SparkSession

from config import (
    AWS_REGION,
    S3_BUCKET_NAME,
    DELTA_TABLE_PROPERTIES,
    SHUFFLE_PARTITIONS,
    LOG_LEVEL,
    LOG_FORMAT,
)

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

# Session-level commit metadata, picked up by every Delta commit including OPTIMIZE
COMMIT_USER_METADATA_KEY = "spark.databricks.delta.commitInfo.userMetadata"


def create_spark_session(
    app_name: str = "Clickstream Lakehouse",
    master: str = "local[*]",
    config_props: Optional[Dict[str, str]] = None,
    enable_hive_support: bool = True,
    enable_delta: bool = True,
    log_level: str = "WARN",
) -> SparkSession:
    """
    Create and configure a Spark session with Delta Lake support.

    Args:
        app_name: Name of the Spark application
        master: Spark master URL (local[*] for local mode, yarn for YARN cluster)
        config_props: Additional configuration properties for Spark
        enable_hive_support: Whether to enable Hive support
        enable_delta: Whether to enable Delta Lake support
        log_level: Log level for Spark (WARN, INFO, DEBUG, etc.)

    Returns:
        SparkSession: Configured Spark session
    """
    # Start building the Spark session
    builder = SparkSession.builder.appName(app_name).master(master)

    # Add default configurations
    default_configs = {
        # General Spark configs
        "spark.sql.extensions": "io.delta.sql.DeltaSparkSessionExtension",
        "spark.sql.catalog.spark_catalog": "org.apache.spark.sql.delta.catalog.DeltaCatalog",
        "spark.sql.adaptive.enabled": "true",
        "spark.sql.adaptive.coalescePartitions.enabled": "true",
        "spark.sql.adaptive.skewJoin.enabled": "true",
        "spark.sql.shuffle.partitions": SHUFFLE_PARTITIONS,
        # Raw timestamps are UTC; calendar fields are derived in UTC
        "spark.sql.session.timeZone": "UTC",
        # Malformed raw values become null instead of failing the cast
        "spark.sql.ansi.enabled": "false",
        # AWS configs
        "spark.hadoop.fs.s3a.impl": "org.apache.hadoop.fs.s3a.S3AFileSystem",
        "spark.hadoop.fs.s3a.aws.credentials.provider": "com.amazonaws.auth.DefaultAWSCredentialsProviderChain",
        "spark.hadoop.fs.s3a.endpoint": f"s3.{AWS_REGION}.amazonaws.com",
        "spark.hadoop.fs.s3a.path.style.access": "false",
        "spark.hadoop.fs.s3a.connection.ssl.enabled": "true",
        # Delta Lake configs
        "spark.databricks.delta.optimizeWrite.enabled": "true",
        "spark.databricks.delta.autoCompact.enabled": "true",
    }

    # Add Delta table properties from config
    for key, value in DELTA_TABLE_PROPERTIES.items():
        default_configs[key] = value

    # Add user-provided configs, overriding defaults if needed
    if config_props:
        default_configs.update(config_props)

    # Apply all configurations
    for key, value in default_configs.items():
        builder = builder.config(key, value)

    # Enable Hive support if requested
    if enable_hive_support:
        builder = builder.enableHiveSupport()

    # Configure Delta Lake if enabled
    if enable_delta:
        from delta import configure_spark_with_delta_pip

        builder = configure_spark_with_delta_pip(builder)
        logger.info("Delta Lake support enabled")

    # Create the Spark session
    spark = builder.getOrCreate()

    # Set log level
    spark.sparkContext.setLogLevel(log_level)

    logger.info(f"Created Spark session with app name: {app_name}")

    return spark


def get_table_uri(table_path: str, bucket_name: Optional[str] = None) -> str:
    """
    Build the full S3A URI of a table path.

    Args:
        table_path: Path to the table (without s3:// prefix)
        bucket_name: S3 bucket name. If None, uses the default from config.

    Returns:
        str: Full s3a:// URI
    """
    if bucket_name is None:
        bucket_name = S3_BUCKET_NAME

    # Ensure the path doesn't start with a slash
    if table_path.startswith("/"):
        table_path = table_path[1:]

    return f"s3a://{bucket_name}/{table_path}"


def read_delta_table(
    spark: SparkSession,
    table_path: str,
    bucket_name: Optional[str] = None,
    version: Optional[int] = None,
) -> DataFrame:
    """
    Read a Delta table from S3.

    Args:
        spark: Spark session
        table_path: Path to the Delta table (without s3:// prefix)
        bucket_name: S3 bucket name. If None, uses the default from config.
        version: Delta table version to read. If None, reads the latest snapshot.

    Returns:
        DataFrame: Spark DataFrame containing the Delta table data
    """
    full_path = get_table_uri(table_path, bucket_name)

    try:
        reader = spark.read.format("delta")
        if version is not None:
            reader = reader.option("versionAsOf", version)

        df = reader.load(full_path)
        logger.info(
            f"Successfully read Delta table from {full_path}"
            + (f" at version {version}" if version is not None else "")
        )
        return df
    except Exception as e:
        logger.error(f"Failed to read Delta table from {full_path}: {str(e)}")
        raise


def write_delta_table(
    df: DataFrame,
    table_path: str,
    mode: str = "overwrite",
    partition_by: Optional[Union[str, List[str]]] = None,
    z_order_by: Optional[Union[str, List[str]]] = None,
    bucket_name: Optional[str] = None,
    table_properties: Optional[Dict[str, str]] = None,
    run_id: Optional[str] = None,
) -> None:
    """
    Write a DataFrame to a Delta table in S3.

    An overwrite is a single Delta commit: readers see either the previous
    version or the new one, never a partial result. When a run id is given it
    is stored as userMetadata on the write commit and on the OPTIMIZE commit
    that follows it, so the latest version always names the run.

    Args:
        df: Spark DataFrame to write
        table_path: Path to the Delta table (without s3:// prefix)
        mode: Write mode (overwrite, append, etc.)
        partition_by: Column(s) to partition by
        z_order_by: Column(s) to Z-order by (for optimization)
        bucket_name: S3 bucket name. If None, uses the default from config.
        table_properties: Additional Delta table properties
        run_id: Pipeline run id stored as the commit's userMetadata

    Returns:
        None
    """
    full_path = get_table_uri(table_path, bucket_name)
    spark = df.sparkSession

    # Tag every commit of this write (the save and the OPTIMIZE) with the run id
    if run_id:
        spark.conf.set(COMMIT_USER_METADATA_KEY, run_id)

    try:
        # Start the write operation
        writer = df.write.format("delta").mode(mode)

        if mode == "overwrite":
            writer = writer.option("overwriteSchema", "true")

        # Add partitioning if specified
        if partition_by:
            if isinstance(partition_by, str):
                partition_by = [partition_by]
            writer = writer.partitionBy(*partition_by)

        # Add table properties if specified
        if table_properties:
            for key, value in table_properties.items():
                writer = writer.option(key, value)

        # Write the Delta table
        writer.save(full_path)

        # Optimize with Z-ordering if specified
        if z_order_by:
            if isinstance(z_order_by, str):
                z_order_by = [z_order_by]

            z_order_cols = ", ".join(z_order_by)
            spark.sql(f"OPTIMIZE delta.`{full_path}` ZORDER BY ({z_order_cols})")

        logger.info(f"Successfully wrote Delta table to {full_path}")
    except Exception as e:
        logger.error(f"Failed to write Delta table to {full_path}: {str(e)}")
        raise
    finally:
        if run_id:
            spark.conf.unset(COMMIT_USER_METADATA_KEY)


def get_table_version(
    spark: SparkSession,
    table_path: str,
    bucket_name: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Get the latest committed version of a Delta table.

    Args:
        spark: Spark session
        table_path: Path to the Delta table (without s3:// prefix)
        bucket_name: S3 bucket name. If None, uses the default from config.

    Returns:
        Optional[Dict[str, Any]]: Version number, commit timestamp and the run id
        stored in userMetadata, or None if the table has no history
    """
    from delta.tables import DeltaTable

    full_path = get_table_uri(table_path, bucket_name)

    try:
        history = DeltaTable.forPath(spark, full_path).history(1).collect()
        if not history:
            return None

        latest = history[0]
        return {
            "version": latest["version"],
            "timestamp": latest["timestamp"],
            "run_id": latest["userMetadata"],
        }
    except Exception as e:
        logger.error(f"Failed to read history of Delta table {full_path}: {str(e)}")
        raise
