import logging

from pyspark.sql import SparkSession

from taxi_tips.config import PipelineConfig

logger = logging.getLogger(__name__)


def connect(config: PipelineConfig) -> SparkSession:
    """Create (or attach to) the Spark session described by config"""
    builder = SparkSession.builder.appName(config.app_name)
    if config.master:
        builder = builder.master(config.master)
    for key, value in config.spark_conf.items():
        builder = builder.config(key, value)

    logger.info(f"Connecting to Spark (master={config.master or 'default'})...")
    spark = builder.getOrCreate()
    logger.info(f"Connected: Spark {spark.version}, app id {spark.sparkContext.applicationId}")
    return spark


def disconnect(spark: SparkSession) -> None:
    logger.info("Stopping Spark session")
    spark.stop()
