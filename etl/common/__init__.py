"""
Common utilities for ETL processes.

This package contains common utilities used across the ETL processes,
including S3 operations, Spark session management, and Glue catalog operations.
"""
