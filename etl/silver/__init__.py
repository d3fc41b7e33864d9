"""
Silver layer ETL processes for the clickstream lakehouse.

This package contains ETL processes for the silver layer, which transforms and
cleanses data from the bronze layer to create high-quality Delta tables.
"""
