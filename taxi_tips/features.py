import logging
from typing import List, Optional

from pyspark.ml.feature import Binarizer, Bucketizer, StringIndexer
from pyspark.sql import DataFrame
from pyspark.sql.functions import col

logger = logging.getLogger(__name__)

# Night, AM rush, midday, PM rush, evening
HOUR_SPLITS = [0.0, 6.0, 10.0, 16.0, 20.0, 24.0]


def binarize(
    df: DataFrame,
    input_col: str,
    output_col: str,
    threshold: float = 0.5,
    index_col: Optional[str] = None,
) -> DataFrame:
    """
    Index a categorical column and binarize the index.

    StringIndexer orders labels by frequency, so with the default threshold
    the most frequent category maps to 0.0 and every other category to 1.0.
    """
    index_col = index_col or f"{input_col}_index"
    indexer = StringIndexer(inputCol=input_col, outputCol=index_col, handleInvalid="keep")
    df = indexer.fit(df).transform(df)

    binarizer = Binarizer(threshold=threshold, inputCol=index_col, outputCol=output_col)
    return binarizer.transform(df)


def bucketize(df: DataFrame, input_col: str, output_col: str, splits: List[float]) -> DataFrame:
    """Map a numeric column onto the bucket index defined by splits"""
    bucketizer = Bucketizer(
        splits=splits, inputCol=input_col, outputCol=output_col, handleInvalid="keep"
    )
    return bucketizer.transform(df.withColumn(input_col, col(input_col).cast("double")))


def transform(df: DataFrame) -> DataFrame:
    """Add payment_type_bin and pickup_hour_bin to the joined table"""
    logger.info("Binarizing payment_type...")
    df = binarize(df, "payment_type", "payment_type_bin", threshold=0.5)

    logger.info(f"Bucketizing pickup_hour with splits {HOUR_SPLITS}...")
    df = bucketize(df, "pickup_hour", "pickup_hour_bin", HOUR_SPLITS)
    return df
