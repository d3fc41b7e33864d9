"""
Schema definitions for the clickstream lakehouse.

This module contains schema definitions for all data models used in the ETL processes.
It includes schemas for:
- Raw data (CSV files)
- Bronze layer Delta tables
- Silver layer Delta tables
- Gold layer Delta tables

Each schema is defined using PySpark's StructType and StructField classes.
Column names are the contract for downstream report queries.
"""

from pyspark.sql.types import (
    StructType,
    StructField,
    StringType,
    IntegerType,
    LongType,
    DoubleType,
    TimestampType,
    DateType,
    BooleanType,
)

# Raw Layer Schemas

# event_time is kept as text: the files write it as "2019-10-01 00:00:04 UTC"
RAW_EVENTS_SCHEMA = StructType(
    [
        StructField("event_time", StringType(), True),
        StructField("event_type", StringType(), True),
        StructField("product_id", LongType(), True),
        StructField("category_id", LongType(), True),
        StructField("category_code", StringType(), True),
        StructField("brand", StringType(), True),
        StructField("price", DoubleType(), True),
        StructField("user_id", LongType(), True),
        StructField("user_session", StringType(), True),
    ]
)

# Bronze Layer Schemas

BRONZE_EVENTS_SCHEMA = StructType(
    [
        StructField("event_time", TimestampType(), True),
        StructField("event_type", StringType(), True),
        StructField("product_id", LongType(), True),
        StructField("category_id", LongType(), True),
        StructField("category_code", StringType(), True),
        StructField("brand", StringType(), True),
        StructField("price", DoubleType(), True),
        StructField("user_id", LongType(), True),
        StructField("user_session", StringType(), True),
        # Metadata columns
        StructField("source_file", StringType(), True),
        StructField("ingestion_timestamp", TimestampType(), True),
        StructField("processing_timestamp", TimestampType(), True),
        StructField("layer", StringType(), True),
    ]
)

# Silver Layer Schemas

SILVER_EVENTS_SCHEMA = StructType(
    [
        StructField("event_time", TimestampType(), False),
        StructField("event_date", DateType(), True),
        StructField("event_hour", IntegerType(), True),
        StructField("day_of_week", IntegerType(), True),
        StructField("event_type", StringType(), False),
        StructField("product_id", LongType(), False),
        StructField("category_id", LongType(), True),
        StructField("category_code", StringType(), True),
        StructField("brand", StringType(), True),
        StructField("price", DoubleType(), True),
        StructField("user_id", LongType(), False),
        StructField("user_session", StringType(), False),
        StructField("is_brand_missing", BooleanType(), True),
        StructField("is_category_missing", BooleanType(), True),
        StructField("is_price_invalid", BooleanType(), True),
        # Metadata columns
        StructField("bronze_source_file", StringType(), True),
        StructField("processing_timestamp", TimestampType(), True),
        StructField("layer", StringType(), True),
    ]
)

# Gold Layer Schemas

GOLD_METADATA_FIELDS = [
    StructField("source_tables", StringType(), True),
    StructField("processing_timestamp", TimestampType(), True),
    StructField("layer", StringType(), True),
]

GOLD_SESSION_METRICS_SCHEMA = StructType(
    [
        StructField("user_session", StringType(), False),
        StructField("user_id", LongType(), True),
        StructField("session_start", TimestampType(), True),
        StructField("session_end", TimestampType(), True),
        StructField("session_duration_minutes", IntegerType(), True),
        StructField("session_date", DateType(), True),
        StructField("session_hour", IntegerType(), True),
        StructField("session_day_of_week", IntegerType(), True),
        StructField("total_events", LongType(), True),
        StructField("views_count", LongType(), True),
        StructField("cart_adds_count", LongType(), True),
        StructField("cart_removes_count", LongType(), True),
        StructField("purchases_count", LongType(), True),
        StructField("unique_products_viewed", LongType(), True),
        StructField("unique_products_carted", LongType(), True),
        StructField("unique_products_purchased", LongType(), True),
        StructField("session_revenue", DoubleType(), True),
        StructField("avg_purchase_value", DoubleType(), True),
        StructField("has_cart", BooleanType(), True),
        StructField("has_purchase", BooleanType(), True),
        StructField("funnel_stage", StringType(), True),
    ]
    + GOLD_METADATA_FIELDS
)

GOLD_USER_PROFILES_SCHEMA = StructType(
    [
        StructField("user_id", LongType(), False),
        StructField("first_event_time", TimestampType(), True),
        StructField("last_event_time", TimestampType(), True),
        StructField("lifetime_days", IntegerType(), True),
        StructField("total_sessions", LongType(), True),
        StructField("active_days", LongType(), True),
        StructField("total_events", LongType(), True),
        StructField("total_views", LongType(), True),
        StructField("total_cart_adds", LongType(), True),
        StructField("total_cart_removes", LongType(), True),
        StructField("total_purchases", LongType(), True),
        StructField("lifetime_revenue", DoubleType(), True),
        StructField("avg_order_value", DoubleType(), True),
        StructField("unique_products", LongType(), True),
        StructField("unique_categories", LongType(), True),
        StructField("unique_brands", LongType(), True),
        StructField("user_type", StringType(), True),
        StructField("buyer_segment", StringType(), True),
    ]
    + GOLD_METADATA_FIELDS
)

GOLD_PRODUCT_PERFORMANCE_SCHEMA = StructType(
    [
        StructField("product_id", LongType(), False),
        StructField("category_id", LongType(), True),
        StructField("category_code", StringType(), True),
        StructField("brand", StringType(), True),
        StructField("avg_price", DoubleType(), True),
        StructField("total_events", LongType(), True),
        StructField("views", LongType(), True),
        StructField("cart_adds", LongType(), True),
        StructField("cart_removes", LongType(), True),
        StructField("purchases", LongType(), True),
        StructField("unique_viewers", LongType(), True),
        StructField("unique_cart_users", LongType(), True),
        StructField("unique_buyers", LongType(), True),
        StructField("total_revenue", DoubleType(), True),
        StructField("view_to_cart_rate", DoubleType(), True),
        StructField("cart_to_purchase_rate", DoubleType(), True),
        StructField("view_to_purchase_rate", DoubleType(), True),
        StructField("never_purchased", BooleanType(), True),
    ]
    + GOLD_METADATA_FIELDS
)


def _rollup_schema(key: str, revenue_column: str) -> StructType:
    return StructType(
        [
            StructField(key, StringType(), False),
            StructField("product_count", LongType(), True),
            StructField("total_views", LongType(), True),
            StructField("total_cart_adds", LongType(), True),
            StructField("total_purchases", LongType(), True),
            StructField(revenue_column, DoubleType(), True),
            StructField("avg_product_price", DoubleType(), True),
            StructField("avg_view_to_cart_rate", DoubleType(), True),
            StructField("avg_cart_to_purchase_rate", DoubleType(), True),
            StructField("avg_view_to_purchase_rate", DoubleType(), True),
            StructField("dead_stock_count", LongType(), True),
        ]
        + GOLD_METADATA_FIELDS
    )


GOLD_CATEGORY_PERFORMANCE_SCHEMA = _rollup_schema("category_code", "category_revenue")

GOLD_BRAND_PERFORMANCE_SCHEMA = _rollup_schema("brand", "brand_revenue")

TIME_BUCKET_METRIC_FIELDS = [
    StructField("total_sessions", LongType(), True),
    StructField("unique_users", LongType(), True),
    StructField("total_events", LongType(), True),
    StructField("total_views", LongType(), True),
    StructField("total_cart_adds", LongType(), True),
    StructField("converting_sessions", LongType(), True),
    StructField("total_orders", LongType(), True),
    StructField("total_revenue", DoubleType(), True),
    StructField("avg_order_value", DoubleType(), True),
    StructField("conversion_rate", DoubleType(), True),
    StructField("avg_session_duration_minutes", DoubleType(), True),
]

GOLD_DAILY_TRENDS_SCHEMA = StructType(
    [StructField("event_date", DateType(), False)]
    + TIME_BUCKET_METRIC_FIELDS
    + GOLD_METADATA_FIELDS
)

GOLD_HOURLY_PATTERNS_SCHEMA = StructType(
    [StructField("hour_of_day", IntegerType(), False)]
    + TIME_BUCKET_METRIC_FIELDS
    + GOLD_METADATA_FIELDS
)

GOLD_DOW_PATTERNS_SCHEMA = StructType(
    [
        StructField("day_of_week", IntegerType(), False),
        StructField("day_name", StringType(), True),
    ]
    + TIME_BUCKET_METRIC_FIELDS
    + GOLD_METADATA_FIELDS
)
