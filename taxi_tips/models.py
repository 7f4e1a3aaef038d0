"""Model blocks: pipeline construction, fitting, scoring and inspection"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from pyspark.ml import Pipeline, PipelineModel
from pyspark.ml.feature import RFormula, VectorAssembler
from pyspark.ml.regression import GBTRegressor, LinearRegression, RandomForestRegressor
from pyspark.sql import DataFrame

from taxi_tips.config import ModelSpec

logger = logging.getLogger(__name__)

ESTIMATORS = {
    "elastic_net": LinearRegression,
    "random_forest": RandomForestRegressor,
    "gbt": GBTRegressor,
}


@dataclass
class FittedModel:
    spec: ModelSpec
    model: PipelineModel
    train_time: float
    features_col: str = "features"

    @property
    def regressor(self):
        # last stage is the regressor
        return self.model.stages[-1]


def build_pipeline(spec: ModelSpec, label_col: str) -> Pipeline:
    """Chain the feature stage (RFormula or VectorAssembler) and the regressor"""
    if spec.formula is not None:
        features = RFormula(
            formula=spec.formula,
            featuresCol="features",
            labelCol="label",
            handleInvalid="keep",  # unseen category levels; nulls are dropped at load
        )
        estimator_label = "label"
    else:
        features = VectorAssembler(
            inputCols=spec.features,
            outputCol="features",
            handleInvalid="skip",
        )
        estimator_label = label_col

    estimator = ESTIMATORS[spec.kind](
        featuresCol="features",
        labelCol=estimator_label,
        predictionCol="prediction",
        **spec.params,
    )
    return Pipeline(stages=[features, estimator])


def fit(spec: ModelSpec, training: DataFrame, label_col: str) -> FittedModel:
    """Fit one model block on the training partition and time it"""
    pipeline = build_pipeline(spec, label_col)

    logger.info(f"Training {spec.name} ({spec.kind}) with {spec.params}...")
    start_time = time.time()
    model = pipeline.fit(training)
    train_time = time.time() - start_time
    logger.info(f"{spec.name} trained in {train_time:.2f} seconds")

    return FittedModel(spec=spec, model=model, train_time=train_time)


def score(fitted: FittedModel, test: DataFrame) -> DataFrame:
    """Held-out table augmented with a prediction column"""
    return fitted.model.transform(test)


def feature_importances(fitted: FittedModel) -> List[Tuple[str, float]]:
    """Feature importances sorted from most to least important; empty for linear models"""
    if fitted.spec.kind == "elastic_net":
        return []

    importances = fitted.regressor.featureImportances
    feature_importance_list = list(zip(fitted.spec.features, importances.toArray()))
    return sorted(
        ((name, float(value)) for name, value in feature_importance_list),
        key=lambda x: x[1],
        reverse=True,
    )


def _attribute_names(df: DataFrame, features_col: str) -> List[str]:
    """Names of the slots of an assembled feature vector, from its ML metadata"""
    metadata = df.schema[features_col].metadata
    attrs = metadata.get("ml_attr", {}).get("attrs", {})
    indexed = sorted((a["idx"], a["name"]) for group in attrs.values() for a in group)
    return [name for _, name in indexed]


def coefficients(fitted: FittedModel, training: DataFrame) -> Tuple[List[Tuple[str, float]], Optional[float]]:
    """
    Elastic net terms and intercept.

    Term names come from the RFormula output metadata, so expanded
    categorical levels (e.g. ``TrafficTimeBins_AMRush``) keep their names.
    Tree models return ``([], None)``.
    """
    if fitted.spec.kind != "elastic_net":
        return [], None

    # schema only, no job is triggered
    transformed = fitted.model.stages[0].transform(training)
    names = _attribute_names(transformed, fitted.features_col)
    values = fitted.regressor.coefficients.toArray()
    if len(names) != len(values):
        names = [f"x{i}" for i in range(len(values))]

    terms = [(name, float(v)) for name, v in zip(names, values)]
    return terms, float(fitted.regressor.intercept)


def save(fitted: FittedModel, model_dir: str, name: Optional[str] = None) -> str:
    """Write the pipeline model under a timestamped path, overwriting"""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    model_save_path = f"{model_dir.rstrip('/')}/{name or fitted.spec.name}_{timestamp}"

    fitted.model.write().overwrite().save(model_save_path)
    logger.info(f"Model saved to {model_save_path}")
    return model_save_path
