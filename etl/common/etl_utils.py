"""
ETL utilities for the clickstream lakehouse.

This module provides common utilities for ETL operations, including:
- Metadata columns and run identifiers
- Schema validation and conformance
- Data quality rules
- Null-safe arithmetic shared by the aggregators
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from pyspark.sql import Column, DataFrame
from pyspark.sql.functions import (
    col,
    lit,
    current_timestamp,
    input_file_name,
    round as spark_round,
    trim,
    when,
)
from pyspark.sql.types import StructType

from config import (
    LOG_LEVEL,
    LOG_FORMAT,
    SCHEMA_VALIDATION,
)

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

QualityRule = Callable[[DataFrame], Tuple[bool, Optional[str]]]


def generate_run_id() -> str:
    """
    Generate a pipeline run identifier.

    Returns:
        str: Run id of the form 20240101T120000-1a2b3c4d (UTC)
    """
    now = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
    return f"{now}-{uuid.uuid4().hex[:8]}"


def add_metadata_columns(
    df: DataFrame,
    layer: str = "bronze",
    source_file_column: bool = True,
    ingestion_timestamp_column: bool = True,
    processing_timestamp_column: bool = True,
    layer_column: bool = True,
) -> DataFrame:
    """
    Add metadata columns to a DataFrame.

    Args:
        df: Spark DataFrame
        layer: Data layer (bronze, silver, gold)
        source_file_column: Whether to add source_file column
        ingestion_timestamp_column: Whether to add ingestion_timestamp column
        processing_timestamp_column: Whether to add processing_timestamp column
        layer_column: Whether to add layer column

    Returns:
        DataFrame: DataFrame with metadata columns added
    """
    result_df = df

    if source_file_column:
        result_df = result_df.withColumn("source_file", input_file_name())

    now = current_timestamp()

    if ingestion_timestamp_column:
        result_df = result_df.withColumn("ingestion_timestamp", now)

    if processing_timestamp_column:
        result_df = result_df.withColumn("processing_timestamp", now)

    if layer_column:
        result_df = result_df.withColumn("layer", lit(layer))

    return result_df


def conform_to_schema(df: DataFrame, schema: StructType) -> DataFrame:
    """
    Select the schema's columns in order, cast to the schema's types.

    Aggregates come out of Spark as LongType/DoubleType regardless of the
    declared table types; this aligns them before validate_schema.

    Args:
        df: Spark DataFrame
        schema: Target schema

    Returns:
        DataFrame: DataFrame with exactly the schema's columns
    """
    return df.select(
        *[col(field.name).cast(field.dataType).alias(field.name) for field in schema.fields]
    )


def validate_schema(
    df: DataFrame,
    expected_schema: StructType,
    strict: bool = False,
) -> Tuple[bool, Optional[str], DataFrame]:
    """
    Validate the schema of a DataFrame against an expected schema.

    Args:
        df: Spark DataFrame to validate
        expected_schema: Expected schema
        strict: Whether to require exact schema match (True) or allow additional columns (False)

    Returns:
        Tuple[bool, Optional[str], DataFrame]:
            - Success flag
            - Error message (if any)
            - DataFrame with the expected schema (if successful) or original DataFrame (if failed)
    """
    if not SCHEMA_VALIDATION:
        # Schema validation is disabled in config
        return True, None, df

    actual_fields = {field.name: field for field in df.schema.fields}
    expected_fields = {field.name: field for field in expected_schema.fields}

    # Check for missing fields
    missing_fields = [
        field_name for field_name in expected_fields if field_name not in actual_fields
    ]

    if missing_fields:
        error_msg = f"Missing fields in schema: {', '.join(missing_fields)}"
        logger.error(error_msg)
        return False, error_msg, df

    # Check for extra fields
    extra_fields = [
        field_name for field_name in actual_fields if field_name not in expected_fields
    ]

    if strict and extra_fields:
        error_msg = f"Extra fields in schema: {', '.join(extra_fields)}"
        logger.error(error_msg)
        return False, error_msg, df

    # Check field types
    type_mismatches = []
    for field_name, expected_field in expected_fields.items():
        actual_field = actual_fields[field_name]
        if actual_field.dataType != expected_field.dataType:
            type_mismatches.append(
                f"{field_name}: expected {expected_field.dataType}, got {actual_field.dataType}"
            )

    if type_mismatches:
        error_msg = f"Schema type mismatches: {', '.join(type_mismatches)}"
        logger.error(error_msg)
        return False, error_msg, df

    if strict:
        result_df = df.select(*[col(field.name) for field in expected_schema.fields])
    else:
        result_df = df

    return True, None, result_df


def enforce_schema(df: DataFrame, schema: StructType) -> DataFrame:
    """
    Conform a DataFrame to a schema and validate it strictly.

    Args:
        df: Spark DataFrame
        schema: Target schema

    Returns:
        DataFrame: Validated DataFrame

    Raises:
        ValueError: If the DataFrame does not match the schema
    """
    missing = [field.name for field in schema.fields if field.name not in df.columns]
    if missing:
        error_msg = f"Missing fields in schema: {', '.join(missing)}"
        logger.error(f"Schema validation failed: {error_msg}")
        raise ValueError(f"Schema validation failed: {error_msg}")

    success, error_msg, validated_df = validate_schema(
        conform_to_schema(df, schema), schema, strict=True
    )

    if not success:
        logger.error(f"Schema validation failed: {error_msg}")
        raise ValueError(f"Schema validation failed: {error_msg}")

    return validated_df


def safe_divide(numerator: Column, denominator: Column, scale: Optional[int] = None) -> Column:
    """
    Divide two columns, yielding null when the denominator is zero or null.

    Args:
        numerator: Numerator column
        denominator: Denominator column
        scale: Optional number of decimal places to round to

    Returns:
        Column: Ratio column
    """
    ratio = numerator.cast("double") / denominator.cast("double")
    if scale is not None:
        ratio = spark_round(ratio, scale)

    return when(denominator.isNotNull() & (denominator != 0), ratio)


def is_blank(column: Column) -> Column:
    """Null or empty after trimming."""
    return column.isNull() | (trim(column) == "")


def not_null_rule(columns: List[str]) -> QualityRule:
    """
    Build a quality rule requiring the given columns to be non-null.

    Args:
        columns: Column names to check

    Returns:
        QualityRule: Rule function returning (success, error_message)
    """

    def _rule(df: DataFrame) -> Tuple[bool, Optional[str]]:
        offending = {
            column_name: df.filter(col(column_name).isNull()).count()
            for column_name in columns
        }
        offending = {name: count for name, count in offending.items() if count}
        if offending:
            return False, f"Null values found: {offending}"
        return True, None

    return _rule


def not_blank_rule(columns: List[str]) -> QualityRule:
    """
    Build a quality rule requiring the given string columns to be non-blank.

    Args:
        columns: Column names to check

    Returns:
        QualityRule: Rule function returning (success, error_message)
    """

    def _rule(df: DataFrame) -> Tuple[bool, Optional[str]]:
        offending = {
            column_name: df.filter(is_blank(col(column_name))).count()
            for column_name in columns
        }
        offending = {name: count for name, count in offending.items() if count}
        if offending:
            return False, f"Blank values found: {offending}"
        return True, None

    return _rule


def validate_data_quality(
    df: DataFrame,
    rules: Dict[str, QualityRule],
) -> Tuple[bool, Dict[str, str]]:
    """
    Validate data quality using a set of rules.

    Args:
        df: Spark DataFrame to validate
        rules: Dictionary mapping rule names to rule functions.
               Each rule function should return (success, error_message).

    Returns:
        Tuple[bool, Dict[str, str]]:
            - Overall success flag
            - Dictionary mapping rule names to error messages for failed rules
    """
    failed_rules = {}

    for rule_name, rule_func in rules.items():
        success, error_message = rule_func(df)
        if not success:
            failed_rules[rule_name] = error_message

    return len(failed_rules) == 0, failed_rules
