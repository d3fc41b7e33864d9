"""
Configuration package for the clickstream lakehouse.

This package contains configuration settings for the clickstream lakehouse.
"""

from config.settings import (
    AWS_REGION,
    S3_BUCKET_NAME,
    S3_PREFIX_STRUCTURE,
    S3_PREFIXES,
    RAW_DATA_DIR,
    SHUFFLE_PARTITIONS,
    LOG_LEVEL,
    LOG_FORMAT,
    GLUE_DATABASE_PREFIX,
    GLUE_DATABASES,
    DELTA_TABLE_PROPERTIES,
    SCHEMA_VALIDATION,
    UNCATEGORIZED_LABEL,
    UNKNOWN_BRAND_LABEL,
    REQUIRED_EVENT_FIELDS,
    EVENT_VIEW,
    EVENT_CART,
    EVENT_REMOVE_FROM_CART,
    EVENT_PURCHASE,
    REPEAT_BUYER_MIN_PURCHASES,
    DAY_OF_WEEK_NAMES,
    get_prefix,
    get_all_settings,
)

__all__ = [
    "AWS_REGION",
    "S3_BUCKET_NAME",
    "S3_PREFIX_STRUCTURE",
    "S3_PREFIXES",
    "RAW_DATA_DIR",
    "SHUFFLE_PARTITIONS",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "GLUE_DATABASE_PREFIX",
    "GLUE_DATABASES",
    "DELTA_TABLE_PROPERTIES",
    "SCHEMA_VALIDATION",
    "UNCATEGORIZED_LABEL",
    "UNKNOWN_BRAND_LABEL",
    "REQUIRED_EVENT_FIELDS",
    "EVENT_VIEW",
    "EVENT_CART",
    "EVENT_REMOVE_FROM_CART",
    "EVENT_PURCHASE",
    "REPEAT_BUYER_MIN_PURCHASES",
    "DAY_OF_WEEK_NAMES",
    "get_prefix",
    "get_all_settings",
]
