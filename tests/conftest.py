import os
import random
import shutil

import pytest

pyspark = pytest.importorskip("pyspark")

from pyspark.sql import SparkSession  # noqa: E402


def _java_available() -> bool:
    return bool(os.environ.get("JAVA_HOME")) or shutil.which("java") is not None


def _traffic_time_bin(hour: int) -> str:
    if hour < 6:
        return "Night"
    if hour < 10:
        return "AMRush"
    if hour < 16:
        return "Midday"
    if hour < 20:
        return "PMRush"
    return "Evening"


@pytest.fixture(scope="session", autouse=True)
def _stop_spark_at_exit():
    yield
    active = SparkSession.getActiveSession()
    if active is not None:
        active.stop()


@pytest.fixture
def spark():
    # getOrCreate per test: a test that stops the session gets a fresh one next time
    if not _java_available():
        pytest.skip("Java runtime not available for local Spark")

    return (
        SparkSession.builder
        .master("local[1]")
        .appName("taxi-tips-tests")
        .config("spark.sql.shuffle.partitions", "1")
        .config("spark.ui.enabled", "false")
        .getOrCreate()
    )


@pytest.fixture(scope="session")
def trip_rows():
    """Small joined trip/fare sample: card trips tip ~15% of the fare, cash trips tip nothing"""
    rng = random.Random(7)
    rows = []
    for i in range(240):
        payment_type = "CRD" if i % 5 < 3 else ("CSH" if i % 5 == 3 else "NOC")
        hour = i % 24
        trip_distance = round(rng.uniform(0.5, 12.0), 2)
        fare_amount = round(2.5 + 2.5 * trip_distance + rng.uniform(0, 2), 2)
        tip_amount = round(0.15 * fare_amount + rng.uniform(0, 0.5), 2) if payment_type == "CRD" else 0.0
        rows.append((
            i, trip_distance, payment_type, hour, 1 + i % 4,
            fare_amount, tip_amount, _traffic_time_bin(hour),
        ))
    return rows


TRIP_COLUMNS = [
    "trip_id", "trip_distance", "payment_type", "pickup_hour", "passenger_count",
    "fare_amount", "tip_amount", "TrafficTimeBins",
]


@pytest.fixture
def trips_df(spark, trip_rows):
    return spark.createDataFrame(trip_rows, TRIP_COLUMNS)


@pytest.fixture
def trips_parquet(trips_df, tmp_path):
    path = str(tmp_path / "joined.parquet")
    trips_df.write.mode("overwrite").parquet(path)
    return path
