"""End-to-end tip regression run

connect -> load + cache -> transform -> split -> one block per model
(fit, score, sample, R², plots) -> uncache -> disconnect
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from pyspark.sql import DataFrame, SparkSession

from taxi_tips import data, evaluation, features, models, plotting, session
from taxi_tips.config import ModelSpec, PipelineConfig

logger = logging.getLogger(__name__)


@dataclass
class ModelResult:
    name: str
    kind: str
    r2: float
    rmse: float
    train_time: float
    sample_rows: int
    importances: List[Tuple[str, float]] = field(default_factory=list)
    coefficients: List[Tuple[str, float]] = field(default_factory=list)
    intercept: Optional[float] = None
    plots: List[str] = field(default_factory=list)
    saved_path: Optional[str] = None


def run_model(spec: ModelSpec, partitions: Dict[str, DataFrame], config: PipelineConfig) -> ModelResult:
    """Fit, evaluate and plot a single model block"""
    training, test = partitions["training"], partitions["test"]
    label_col = config.label_col

    fitted = models.fit(spec, training, label_col)

    importances = models.feature_importances(fitted)
    if importances:
        logger.info("Top feature importances:")
        for feature, importance in importances:
            logger.info(f"  {feature:<25} : {importance:.4f}")

    terms, intercept = models.coefficients(fitted, training)
    if terms:
        logger.info(f"Intercept: {intercept:.4f}")
        for term, value in terms:
            logger.info(f"  {term:<25} : {value:.4f}")

    predictions = models.score(fitted, test)
    test_rmse = evaluation.rmse(predictions, label_col)

    local = evaluation.sample_local(
        predictions,
        fraction=config.sample_fraction,
        seed=config.sample_seed,
        columns=[label_col, "prediction"],
        limit=config.sample_limit,
    )
    r2 = evaluation.r_squared(local[label_col], local["prediction"])

    plots = [plotting.plot_predictions(local, label_col, spec.name, r2, config.output_dir)]
    if importances:
        plots.append(plotting.plot_importances(importances, spec.name, config.output_dir))

    saved_path = None
    if config.model_dir:
        saved_path = models.save(fitted, config.model_dir, spec.name)

    logger.info(f"Performance summary for {spec.name}:")
    logger.info(f"  Train time       : {fitted.train_time:.2f} s")
    logger.info(f"  RMSE (test)      : {test_rmse:.4f}")
    logger.info(f"  R² (sampled)     : {r2:.4f}")

    return ModelResult(
        name=spec.name,
        kind=spec.kind,
        r2=r2,
        rmse=test_rmse,
        train_time=fitted.train_time,
        sample_rows=len(local),
        importances=importances,
        coefficients=terms,
        intercept=intercept,
        plots=plots,
        saved_path=saved_path,
    )


def run(config: PipelineConfig, spark: Optional[SparkSession] = None) -> List[ModelResult]:
    """
    Run every configured model block against the joined dataset.

    When ``spark`` is given the caller owns the session and it is left
    running; otherwise a session is created from config and stopped at the end.
    """
    owns_session = spark is None
    if owns_session:
        spark = session.connect(config)

    results: List[ModelResult] = []
    failed = True
    try:
        joined = data.load_joined(spark, config.data_path, config.table_name)
        transformed = features.transform(joined)
        partitions = data.partition(transformed, seed=config.split_seed, **config.fractions)

        for spec in config.models:
            results.append(run_model(spec, partitions, config))

        if len(results) > 1:
            plotting.plot_comparison({r.name: r.r2 for r in results}, config.output_dir)
        failed = False
        return results

    finally:
        _teardown(spark, config.table_name, owns_session, failed)


def _teardown(spark: SparkSession, table_name: str, owns_session: bool, failed: bool) -> None:
    """Uncache and disconnect; a teardown error never masks the run's own error"""
    try:
        data.uncache(spark, table_name)
    except Exception:
        if not failed:
            raise
        logger.exception(f"Could not uncache {table_name} after a failed run")
    finally:
        if owns_session:
            session.disconnect(spark)


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Fit tip amount regressors on the joined NYC taxi dataset")
    p.add_argument("--master", help="Spark master / connection mode, e.g. yarn or local[*]")
    p.add_argument("--data-path", dest="data_path", help="Joined trip/fare parquet path")
    p.add_argument("--output-dir", dest="output_dir", help="Directory for plots")
    p.add_argument("--model-dir", dest="model_dir", help="Save fitted models under this path")
    p.add_argument("--sample-fraction", dest="sample_fraction", type=float,
                   help="Fraction of test predictions brought to the driver")
    p.add_argument("--seed", dest="split_seed", type=int, help="Train/test split seed")
    p.add_argument("--models", nargs="+", help="Subset of model blocks to run, in order")
    return p.parse_args(argv)


def build_config(args: argparse.Namespace, environ=None) -> PipelineConfig:
    config = PipelineConfig.from_env(environ)
    for name in ("master", "data_path", "output_dir", "model_dir", "sample_fraction", "split_seed"):
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)
    if not 0 < config.sample_fraction <= 1:
        raise ValueError(f"sample_fraction must be in (0, 1], got {config.sample_fraction}")
    if args.models:
        config.select_models(args.models)
    return config


def main(argv=None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        config = build_config(parse_args(argv))
        results = run(config)
    except Exception:
        logger.exception("Tip regression run failed")
        return 1

    print("\nPerformance Summary:")
    for r in results:
        print(f"  {r.name:<15} R² {r.r2:.4f}   RMSE {r.rmse:.4f}   train {r.train_time:.2f} s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
