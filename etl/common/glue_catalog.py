"""
AWS Glue Data Catalog utilities for the clickstream lakehouse.

Each layer has its own Glue database (clickstream_bronze, clickstream_silver,
clickstream_gold). Tables are registered through Spark SQL so the catalog entry
points at the Delta location and always serves its latest version.
"""

import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from pyspark.sql import SparkSession

from etl.common.spark_session import get_table_uri
from config import (
    AWS_REGION,
    GLUE_DATABASES,
    LOG_LEVEL,
    LOG_FORMAT,
)

# Configure logging
logging.basicConfig(level=getattr(logging, LOG_LEVEL), format=LOG_FORMAT)
logger = logging.getLogger(__name__)


def _sql_string(value: str) -> str:
    """Quote a value as a Spark SQL string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def create_glue_client(region_name: Optional[str] = None) -> Any:
    """Glue client for the configured region."""
    return boto3.client("glue", region_name=region_name or AWS_REGION)


def create_database(
    database_name: str,
    description: Optional[str] = None,
    glue_client: Any = None,
) -> bool:
    """
    Create a layer database, treating an existing one as success.

    Args:
        database_name: Glue database name
        description: Database description
        glue_client: Existing Glue client

    Returns:
        bool: True if the database exists afterwards, False otherwise
    """
    glue_client = glue_client or create_glue_client()

    database_input = {"Name": database_name}
    if description:
        database_input["Description"] = description

    try:
        glue_client.create_database(DatabaseInput=database_input)
        logger.info(f"Created Glue database {database_name}")
        return True
    except ClientError as e:
        if e.response["Error"]["Code"] == "AlreadyExistsException":
            logger.info(f"Glue database {database_name} already exists")
            return True
        logger.error(f"Failed to create Glue database {database_name}: {str(e)}")
        return False


def create_all_databases(region_name: Optional[str] = None) -> Dict[str, bool]:
    """
    Create the bronze, silver and gold databases.

    Args:
        region_name: AWS region name. If None, uses the default region from config.

    Returns:
        Dict[str, bool]: Outcome per layer
    """
    glue_client = create_glue_client(region_name)

    return {
        layer: create_database(
            database_name,
            f"Clickstream lakehouse {layer} tables",
            glue_client=glue_client,
        )
        for layer, database_name in GLUE_DATABASES.items()
    }


def registration_statements(
    qualified_name: str,
    location: str,
    description: Optional[str] = None,
    columns_description: Optional[Dict[str, str]] = None,
) -> List[str]:
    """
    Spark SQL statements that register a Delta table and document it.

    Args:
        qualified_name: database.table
        location: Delta table URI
        description: Table comment
        columns_description: Column comments by column name

    Returns:
        List[str]: CREATE TABLE followed by the comment statements
    """
    statements = [
        f"CREATE TABLE IF NOT EXISTS {qualified_name} USING DELTA LOCATION {_sql_string(location)}"
    ]

    if description:
        statements.append(f"COMMENT ON TABLE {qualified_name} IS {_sql_string(description)}")

    for column_name, column_description in (columns_description or {}).items():
        statements.append(
            f"ALTER TABLE {qualified_name} "
            f"ALTER COLUMN {column_name} COMMENT {_sql_string(column_description)}"
        )

    return statements


def register_delta_table(
    spark: SparkSession,
    table_name: str,
    table_path: str,
    database_name: Optional[str] = None,
    description: Optional[str] = None,
    layer: str = "bronze",
    bucket_name: Optional[str] = None,
    columns_description: Optional[Dict[str, str]] = None,
) -> bool:
    """
    Register a Delta table in the Glue Data Catalog.

    Registration never fails a pipeline stage: errors are logged and reported
    through the return value.

    Args:
        spark: Spark session
        table_name: Name of the table to register
        table_path: Path to the Delta table (without s3:// prefix)
        database_name: Name of the database. If None, uses the database of the layer.
        description: Description of the table
        layer: Data layer (bronze, silver, gold)
        bucket_name: S3 bucket name. If None, uses the default from config.
        columns_description: Dictionary mapping column names to descriptions

    Returns:
        bool: True if table was registered successfully, False otherwise
    """
    database_name = database_name or GLUE_DATABASES.get(layer)
    if not database_name:
        logger.error(f"No Glue database configured for layer {layer}")
        return False

    qualified_name = f"{database_name}.{table_name}"

    try:
        if not create_database(database_name):
            return False

        for statement in registration_statements(
            qualified_name,
            get_table_uri(table_path, bucket_name),
            description,
            columns_description,
        ):
            spark.sql(statement)

        logger.info(f"Registered Delta table {qualified_name}")
        return True
    except Exception as e:
        logger.error(f"Failed to register Delta table {qualified_name}: {str(e)}")
        return False
