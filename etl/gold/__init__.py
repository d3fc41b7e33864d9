"""
Gold layer ETL processes for the clickstream lakehouse.

This package contains ETL processes for the gold layer, which aggregates and
transforms data from the silver layer to create business-ready Delta tables.
"""
