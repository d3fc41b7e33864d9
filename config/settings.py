"""
Configuration settings for the clickstream lakehouse.

This module contains all configuration settings for the clickstream lakehouse,
including:
- AWS settings (region, bucket name)
- Data layer settings (raw, bronze, silver, gold)
- Cleaning and segmentation rules (sentinel labels, buyer thresholds)
- Logging settings

All settings can be overridden by environment variables with the same name prefixed with 'ECOM_'.
For example, AWS_REGION can be overridden by setting the ECOM_AWS_REGION environment variable.
"""

import os
from pathlib import Path
from typing import Dict, Any

# Project root directory
PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Local directory holding the raw clickstream CSV files
RAW_DATA_DIR = os.environ.get("ECOM_RAW_DATA_DIR", os.path.join(PROJECT_ROOT, "Data"))

# AWS Settings
AWS_REGION = os.environ.get("ECOM_AWS_REGION", "eu-west-1")
S3_BUCKET_NAME = os.environ.get("ECOM_S3_BUCKET_NAME", "clickstream-lakehouse-bucket")

# S3 Prefix Structure
S3_PREFIX_STRUCTURE = {
    # Raw layer
    "raw": {
        "base": "raw/",
        "events": "raw/events/",
    },
    # Bronze layer
    "bronze": {
        "base": "bronze/",
        "events": "bronze/events/",
    },
    # Silver layer
    "silver": {
        "base": "silver/",
        "events": "silver/events/",
    },
    # Gold layer
    "gold": {
        "base": "gold/",
        "session_metrics": "gold/session_metrics/",
        "user_profiles": "gold/user_profiles/",
        "product_performance": "gold/product_performance/",
        "category_performance": "gold/category_performance/",
        "brand_performance": "gold/brand_performance/",
        "daily_trends": "gold/daily_trends/",
        "hourly_patterns": "gold/hourly_patterns/",
        "dow_patterns": "gold/dow_patterns/",
    },
}

# Flatten the prefix structure for easy access
S3_PREFIXES = []
for category in S3_PREFIX_STRUCTURE.values():
    S3_PREFIXES.extend(category.values())

# Spark settings
SHUFFLE_PARTITIONS = os.environ.get("ECOM_SHUFFLE_PARTITIONS", "200")

# Logging settings
LOG_LEVEL = os.environ.get("ECOM_LOG_LEVEL", "INFO")
LOG_FORMAT = os.environ.get(
    "ECOM_LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Glue Data Catalog settings
GLUE_DATABASE_PREFIX = os.environ.get("ECOM_GLUE_DATABASE_PREFIX", "clickstream")
GLUE_DATABASES = {
    "bronze": f"{GLUE_DATABASE_PREFIX}_bronze",
    "silver": f"{GLUE_DATABASE_PREFIX}_silver",
    "gold": f"{GLUE_DATABASE_PREFIX}_gold",
}

# Delta Lake settings
DELTA_TABLE_PROPERTIES = {
    "delta.autoOptimize.optimizeWrite": "true",
    "delta.autoOptimize.autoCompact": "true",
}

# Schema settings
SCHEMA_VALIDATION = os.environ.get("ECOM_SCHEMA_VALIDATION", "true").lower() == "true"

# Cleaning rules
UNCATEGORIZED_LABEL = "uncategorized"
UNKNOWN_BRAND_LABEL = "unknown"
REQUIRED_EVENT_FIELDS = ["event_time", "event_type", "product_id", "user_id", "user_session"]

# Event types counted into typed buckets; anything else only counts towards totals
EVENT_VIEW = "view"
EVENT_CART = "cart"
EVENT_REMOVE_FROM_CART = "remove_from_cart"
EVENT_PURCHASE = "purchase"

# Segmentation rules
REPEAT_BUYER_MIN_PURCHASES = int(os.environ.get("ECOM_REPEAT_BUYER_MIN_PURCHASES", "3"))

# Spark dayofweek() numbering
DAY_OF_WEEK_NAMES = {
    1: "Sunday",
    2: "Monday",
    3: "Tuesday",
    4: "Wednesday",
    5: "Thursday",
    6: "Friday",
    7: "Saturday",
}


# Function to get a specific prefix
def get_prefix(layer: str, category: str) -> str:
    """
    Get a specific prefix from the S3 prefix structure.

    Args:
        layer: The data layer (raw, bronze, silver, gold, other)
        category: The table or category within the layer

    Returns:
        str: The prefix

    Raises:
        KeyError: If the layer or category does not exist
    """
    return S3_PREFIX_STRUCTURE[layer][category]


# Function to get all settings as a dictionary
def get_all_settings() -> Dict[str, Any]:
    """
    Get all settings as a dictionary.

    Returns:
        Dict[str, Any]: All settings
    """
    return {
        "AWS_REGION": AWS_REGION,
        "S3_BUCKET_NAME": S3_BUCKET_NAME,
        "S3_PREFIX_STRUCTURE": S3_PREFIX_STRUCTURE,
        "S3_PREFIXES": S3_PREFIXES,
        "RAW_DATA_DIR": RAW_DATA_DIR,
        "SHUFFLE_PARTITIONS": SHUFFLE_PARTITIONS,
        "LOG_LEVEL": LOG_LEVEL,
        "LOG_FORMAT": LOG_FORMAT,
        "GLUE_DATABASE_PREFIX": GLUE_DATABASE_PREFIX,
        "GLUE_DATABASES": GLUE_DATABASES,
        "DELTA_TABLE_PROPERTIES": DELTA_TABLE_PROPERTIES,
        "SCHEMA_VALIDATION": SCHEMA_VALIDATION,
        "UNCATEGORIZED_LABEL": UNCATEGORIZED_LABEL,
        "UNKNOWN_BRAND_LABEL": UNKNOWN_BRAND_LABEL,
        "REQUIRED_EVENT_FIELDS": REQUIRED_EVENT_FIELDS,
        "REPEAT_BUYER_MIN_PURCHASES": REPEAT_BUYER_MIN_PURCHASES,
        "DAY_OF_WEEK_NAMES": DAY_OF_WEEK_NAMES,
    }
