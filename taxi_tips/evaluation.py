import logging
from typing import List

import numpy as np
import pandas as pd
from pyspark.ml.evaluation import RegressionEvaluator
from pyspark.sql import DataFrame

logger = logging.getLogger(__name__)


def sample_local(
    predictions: DataFrame,
    fraction: float,
    seed: int,
    columns: List[str],
    limit: int = 5000,
) -> pd.DataFrame:
    """
    Bring a small sample of a distributed table to the driver.

    The sample is drawn without replacement and capped at ``limit`` rows so
    plotting never pulls the full test partition onto the driver. When the
    cap would apply, the fraction is lowered to ``limit / count`` first so the
    kept rows stay spread over all partitions.
    """
    selected = predictions.select(*columns)
    total = selected.count()
    if total and total * fraction > limit:
        fraction = limit / total
        logger.info(f"Lowered sample fraction to {fraction:.4f} to keep about {limit} of {total} rows")

    local = (
        selected
        .sample(withReplacement=False, fraction=fraction, seed=seed)
        .limit(limit)
        .toPandas()
    )
    logger.info(f"Sampled {len(local)} rows ({fraction * 100}% capped at {limit}) to the driver")
    return local


def r_squared(actual, predicted) -> float:
    """
    Squared Pearson correlation between actual and predicted values.

    Pairs where either value is not finite are ignored. Returns nan when
    fewer than two pairs remain or either side has zero variance.
    """
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if actual.shape != predicted.shape:
        raise ValueError(f"Length mismatch: {actual.shape} vs {predicted.shape}")

    finite = np.isfinite(actual) & np.isfinite(predicted)
    if not finite.all():
        logger.warning(f"Ignoring {int((~finite).sum())} non-finite pairs in R²")
        actual, predicted = actual[finite], predicted[finite]

    if actual.size < 2 or np.std(actual) == 0 or np.std(predicted) == 0:
        logger.warning("R² undefined for fewer than two points or constant values")
        return float("nan")

    r = np.corrcoef(actual, predicted)[0, 1]
    return float(r ** 2)


def rmse(predictions: DataFrame, label_col: str, prediction_col: str = "prediction") -> float:
    """Root mean squared error over the full scored table"""
    evaluator = RegressionEvaluator(
        labelCol=label_col,
        predictionCol=prediction_col,
        metricName="rmse",
    )
    return evaluator.evaluate(predictions)
