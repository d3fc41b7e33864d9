"""
Bronze layer ETL processes for the clickstream lakehouse.

This package contains ETL processes for the bronze layer, which ingests raw data
from the raw layer and applies minimal transformations to create Delta tables.
"""
