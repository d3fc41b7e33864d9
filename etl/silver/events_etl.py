#!/usr/bin/env python
"""
Silver Events ETL

This script cleans clickstream events from the bronze layer into the silver layer.
It performs the following operations:
1. Reads events from the bronze Delta table
2. Drops events missing a required key (event_time, event_type, product_id, user_id, user_session)
3. Flags missing brand/category and invalid prices from the raw values
4. Normalizes event_type, category_code, brand and price
5. Adds calendar columns (event_date, event_hour, day_of_week)
6. Audits data quality, writes to Silver Delta table and updates Glue Data Catalog

Usage:
    python -m etl.silver.events_etl [--run-id RUN_ID]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.functions import (
    col,
    count,
    dayofweek,
    hour,
    lit,
    lower,
    round as spark_round,
    sum as spark_sum,
    to_date,
    trim,
    when,
)
from pyspark.sql.types import DoubleType, StringType

# Add the project root to the Python path
sys.path.append(str(Path(__file__).resolve().parents[2]))

from etl.common.spark_session import (
    create_spark_session,
    read_delta_table,
    write_delta_table,
)
from etl.common.glue_catalog import register_delta_table
from etl.common.etl_utils import (
    add_metadata_columns,
    enforce_schema,
    generate_run_id,
    is_blank,
    not_blank_rule,
    not_null_rule,
    validate_data_quality,
)
from etl.common.schemas import SILVER_EVENTS_SCHEMA
from config import (
    S3_BUCKET_NAME,
    AWS_REGION,
    LOG_LEVEL,
    LOG_FORMAT,
    REQUIRED_EVENT_FIELDS,
    UNCATEGORIZED_LABEL,
    UNKNOWN_BRAND_LABEL,
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
        description="Clean clickstream events from bronze to silver layer"
    )
    parser.add_argument(
        "--bucket-name",
        type=str,
        default=S3_BUCKET_NAME,
        help=f"S3 bucket name (default: {S3_BUCKET_NAME})",
    )
    parser.add_argument(
        "--region",
        type=str,
        default=AWS_REGION,
        help=f"AWS region (default: {AWS_REGION})",
    )
    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Pipeline run id (default: generated)",
    )

    return parser.parse_args()


def read_bronze_events(spark: SparkSession, bucket_name: str) -> DataFrame:
    """
    Read events from the bronze layer.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        DataFrame: Events data from bronze layer
    """
    bronze_table_path = f"{get_prefix('bronze', 'events')}"

    logger.info(f"Reading events data from bronze layer: {bronze_table_path}")

    try:
        df = read_delta_table(
            spark=spark, table_path=bronze_table_path, bucket_name=bucket_name
        )
        logger.info("Successfully read events from bronze layer")
        return df
    except Exception as e:
        logger.error(f"Error reading events data from bronze layer: {str(e)}")
        raise


def filter_incomplete_events(df: DataFrame) -> DataFrame:
    """
    Drop events missing any required key field.

    Text fields that are empty or whitespace-only count as missing.

    Args:
        df: Events DataFrame

    Returns:
        DataFrame: Events with every required field present
    """
    condition = None
    for field_name in REQUIRED_EVENT_FIELDS:
        if isinstance(df.schema[field_name].dataType, StringType):
            field_present = ~is_blank(col(field_name))
        else:
            field_present = col(field_name).isNotNull()
        condition = field_present if condition is None else condition & field_present

    return df.filter(condition)


def add_quality_flags(df: DataFrame) -> DataFrame:
    """
    Flag missing brand/category and invalid price.

    Must run before normalize_events: the flags describe the raw values, not the
    sentinels that replace them.

    Args:
        df: Events DataFrame with raw values

    Returns:
        DataFrame: DataFrame with is_brand_missing, is_category_missing and is_price_invalid
    """
    return (
        df.withColumn("is_brand_missing", is_blank(col("brand")))
        .withColumn("is_category_missing", is_blank(col("category_code")))
        .withColumn(
            "is_price_invalid", col("price").isNull() | (col("price") <= 0)
        )
    )


def normalize_events(df: DataFrame) -> DataFrame:
    """
    Normalize event type, labels and price.

    Args:
        df: Events DataFrame with quality flags

    Returns:
        DataFrame: Normalized events
    """
    return (
        df.withColumn("event_type", lower(trim(col("event_type"))))
        .withColumn(
            "category_code",
            when(col("is_category_missing"), lit(UNCATEGORIZED_LABEL)).otherwise(
                lower(trim(col("category_code")))
            ),
        )
        .withColumn(
            "brand",
            when(col("is_brand_missing"), lit(UNKNOWN_BRAND_LABEL)).otherwise(
                lower(trim(col("brand")))
            ),
        )
        .withColumn(
            "price",
            when(col("is_price_invalid"), lit(None).cast(DoubleType())).otherwise(
                spark_round(col("price"), 2)
            ),
        )
    )


def add_calendar_columns(df: DataFrame) -> DataFrame:
    """
    Add calendar columns derived from event_time.

    Args:
        df: Events DataFrame

    Returns:
        DataFrame: DataFrame with event_date, event_hour (0-23) and
        day_of_week (1 = Sunday, 2 = Monday, ..., 7 = Saturday)
    """
    return (
        df.withColumn("event_date", to_date(col("event_time")))
        .withColumn("event_hour", hour(col("event_time")))
        .withColumn("day_of_week", dayofweek(col("event_time")))
    )


def transform_events_data(df: DataFrame) -> DataFrame:
    """
    Transform bronze events into cleaned silver events.

    Args:
        df: Events DataFrame from bronze layer

    Returns:
        DataFrame: Cleaned events
    """
    logger.info("Transforming events data for silver layer")

    try:
        complete_df = filter_incomplete_events(df)
        flagged_df = add_quality_flags(complete_df)
        normalized_df = normalize_events(flagged_df)
        calendar_df = add_calendar_columns(normalized_df)

        result_df = add_metadata_columns(
            calendar_df,
            layer="silver",
            source_file_column=False,
            ingestion_timestamp_column=False,
            processing_timestamp_column=True,
            layer_column=True,
        )

        # Keep lineage to the bronze file when it is known
        if "source_file" in df.columns:
            result_df = result_df.withColumn("bronze_source_file", col("source_file"))
        else:
            result_df = result_df.withColumn("bronze_source_file", lit(None).cast("string"))

        validated_df = enforce_schema(result_df, SILVER_EVENTS_SCHEMA)

        logger.info("Successfully transformed events data for silver layer")
        return validated_df
    except Exception as e:
        logger.error(f"Error transforming events data: {str(e)}")
        raise


def audit_events_quality(raw_df: DataFrame, cleaned_df: DataFrame) -> Dict[str, int]:
    """
    Count dropped rows and flagged values.

    Dropped rows are not failures; this audit is the only place they are counted.

    Args:
        raw_df: Bronze events DataFrame
        cleaned_df: Silver events DataFrame

    Returns:
        Dict[str, int]: Audit counters
    """
    raw_counts = raw_df.agg(
        count(lit(1)).alias("raw_rows"),
        *[
            spark_sum(when(col(field_name).isNull(), 1).otherwise(0)).alias(
                f"null_{field_name}"
            )
            for field_name in REQUIRED_EVENT_FIELDS
        ],
    ).collect()[0]

    cleaned_counts = cleaned_df.agg(
        count(lit(1)).alias("cleaned_rows"),
        spark_sum(when(col("is_brand_missing"), 1).otherwise(0)).alias("missing_brand_rows"),
        spark_sum(when(col("is_category_missing"), 1).otherwise(0)).alias(
            "missing_category_rows"
        ),
        spark_sum(when(col("is_price_invalid"), 1).otherwise(0)).alias("invalid_price_rows"),
    ).collect()[0]

    audit = {key: int(value or 0) for key, value in raw_counts.asDict().items()}
    audit.update({key: int(value or 0) for key, value in cleaned_counts.asDict().items()})
    audit["dropped_rows"] = audit["raw_rows"] - audit["cleaned_rows"]

    logger.info(f"Silver events quality audit: {audit}")
    return audit


def check_cleaned_events(df: DataFrame) -> None:
    """
    Verify the cleaned events invariants.

    Args:
        df: Silver events DataFrame

    Raises:
        ValueError: If a required key is null or a label is blank
    """
    success, failed_rules = validate_data_quality(
        df,
        {
            "required_fields_present": not_null_rule(REQUIRED_EVENT_FIELDS),
            "labels_not_blank": not_blank_rule(["category_code", "brand"]),
        },
    )

    if not success:
        logger.error(f"Silver events quality check failed: {failed_rules}")
        raise ValueError(f"Silver events quality check failed: {failed_rules}")


def write_silver_events(df: DataFrame, bucket_name: str, run_id: Optional[str] = None) -> None:
    """
    Write cleaned events to the silver Delta table.

    Args:
        df: Cleaned events DataFrame
        bucket_name: S3 bucket name
        run_id: Pipeline run id

    Returns:
        None
    """
    table_path = f"{get_prefix('silver', 'events')}"

    logger.info(f"Writing events data to silver layer: {table_path}")

    try:
        write_delta_table(
            df=df,
            table_path=table_path,
            mode="overwrite",  # Rebuilt wholesale from bronze on every run
            partition_by=["event_date"],
            z_order_by="user_session",
            bucket_name=bucket_name,
            run_id=run_id,
        )

        logger.info(f"Successfully wrote events data to silver layer: {table_path}")
    except Exception as e:
        logger.error(f"Error writing events data to silver layer: {str(e)}")
        raise


def register_silver_events_table(spark: SparkSession, bucket_name: str) -> None:
    """
    Register silver events table in Glue Data Catalog.

    Args:
        spark: Spark session
        bucket_name: S3 bucket name

    Returns:
        None
    """
    table_path = f"{get_prefix('silver', 'events')}"

    logger.info("Registering silver events table in Glue Data Catalog")

    try:
        success = register_delta_table(
            spark=spark,
            table_name="events",
            table_path=table_path,
            database_name=None,  # Use default from config
            description="Silver layer cleaned clickstream events",
            layer="silver",
            bucket_name=bucket_name,
            columns_description={
                "event_time": "Time the event happened (UTC)",
                "event_date": "Calendar date of the event",
                "event_hour": "Hour of the day (0-23)",
                "day_of_week": "Day of the week (1 = Sunday, 2 = Monday, ..., 7 = Saturday)",
                "event_type": "Event type, lower-cased and trimmed",
                "product_id": "Product identifier",
                "category_id": "Category identifier",
                "category_code": "Category code, 'uncategorized' when missing",
                "brand": "Brand name, 'unknown' when missing",
                "price": "Price rounded to 2 decimals, null when not positive",
                "user_id": "User identifier",
                "user_session": "Session token",
                "is_brand_missing": "Raw brand was null or blank",
                "is_category_missing": "Raw category code was null or blank",
                "is_price_invalid": "Raw price was null or not positive",
                "bronze_source_file": "Source file in the bronze layer",
                "processing_timestamp": "Timestamp when the data was processed",
                "layer": "Data layer (silver)",
            },
        )

        if success:
            logger.info("Successfully registered silver events table in Glue Data Catalog")
        else:
            logger.error("Failed to register silver events table in Glue Data Catalog")
    except Exception as e:
        logger.error(f"Error registering silver events table: {str(e)}")
        raise


def main(bucket_name: str, region: str, run_id: Optional[str] = None) -> int:
    """
    Main function to run the ETL process.

    Args:
        bucket_name: S3 bucket name
        region: AWS region
        run_id: Pipeline run id. If None, a new one is generated.

    Returns:
        int: Exit code (0 for success, 1 for failure)
    """
    run_id = run_id or generate_run_id()
    logger.info(f"Starting Silver Events ETL (run {run_id})")

    try:
        spark = create_spark_session(
            app_name=f"silver_events_etl_{run_id}", enable_hive_support=True
        )

        bronze_df = read_bronze_events(spark, bucket_name)

        silver_df = transform_events_data(bronze_df)

        check_cleaned_events(silver_df)

        audit_events_quality(bronze_df, silver_df)

        write_silver_events(silver_df, bucket_name, run_id)

        register_silver_events_table(spark, bucket_name)

        spark.stop()

        logger.info(f"Successfully completed Silver Events ETL (run {run_id})")
        return 0
    except Exception as e:
        logger.error(f"Error in Silver Events ETL: {str(e)}")
        return 1


if __name__ == "__main__":
    args = parse_arguments()
    exit_code = main(args.bucket_name, args.region, args.run_id)
    sys.exit(exit_code)
