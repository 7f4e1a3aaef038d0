"""Loading, caching and splitting the joined trip/fare table"""

import logging
from typing import Dict, Iterable

from pyspark.sql import DataFrame, SparkSession

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = [
    "trip_distance", "payment_type", "pickup_hour", "passenger_count",
    "fare_amount", "tip_amount", "TrafficTimeBins",
]


def load_joined(
    spark: SparkSession,
    path: str,
    table_name: str,
    required: Iterable[str] = REQUIRED_COLUMNS,
) -> DataFrame:
    """
    Read the joined parquet dataset and cache it as a named table.

    Args:
        spark: Active session
        path: Parquet location (HDFS, wasb or local)
        table_name: Name the table is registered and cached under
        required: Columns that must be present

    Returns:
        The cached table as a DataFrame

    Rows with a null in any required column are dropped, so every model
    block sees the same complete rows.

    Raises:
        ValueError: If any required column is missing
    """
    logger.info(f"Loading joined trip/fare data from {path}")
    df = spark.read.parquet(path)

    # Verify all columns exist
    required = list(required)
    missing_cols = [c for c in required if c not in df.columns]
    if missing_cols:
        raise ValueError(f"Missing columns in DataFrame: {missing_cols}")

    # remove nulls
    df = df.na.drop(subset=required)

    df.createOrReplaceTempView(table_name)
    spark.catalog.cacheTable(table_name)
    logger.info(f"Cached table {table_name} ({len(df.columns)} columns)")
    return spark.table(table_name)


def _is_temp_view(spark: SparkSession, table_name: str) -> bool:
    return any(
        t.isTemporary and t.name.lower() == table_name.lower()
        for t in spark.catalog.listTables()
    )


def uncache(spark: SparkSession, table_name: str) -> None:
    """
    Release the cached table and drop its view.

    Only temp views are touched; a permanent table of the same name in the
    current database is left alone.
    """
    if _is_temp_view(spark, table_name):
        if spark.catalog.isCached(table_name):
            spark.catalog.uncacheTable(table_name)
        spark.catalog.dropTempView(table_name)
        logger.info(f"Uncached table {table_name}")


def partition(df: DataFrame, seed: int, **fractions: float) -> Dict[str, DataFrame]:
    """
    Randomly split df into named partitions.

    Weights are normalized by Spark, so ``training=3, test=1`` and
    ``training=0.75, test=0.25`` give the same split for the same seed.

    Example:
        >>> parts = partition(df, seed=1099, training=0.75, test=0.25)
        >>> parts["training"], parts["test"]
    """
    if not fractions:
        raise ValueError("At least one partition fraction is required")
    bad = {name: f for name, f in fractions.items() if f <= 0}
    if bad:
        raise ValueError(f"Partition fractions must be positive: {bad}")

    names = list(fractions)
    splits = df.randomSplit([fractions[n] for n in names], seed=seed)
    logger.info(f"Split data into {fractions} with seed {seed}")
    return dict(zip(names, splits))
