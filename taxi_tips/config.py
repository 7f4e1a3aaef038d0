"""Pipeline configuration

Defaults mirror the notebook run on the HDInsight cluster. Every field can be
overridden from ``TAXI_TIPS_*`` environment variables or the command line.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

MODEL_KINDS = ("elastic_net", "random_forest", "gbt")

TREE_FEATURES = [
    "payment_type_bin", "fare_amount", "pickup_hour_bin",
    "passenger_count", "trip_distance",
]

ELASTIC_NET_FORMULA = (
    "tip_amount ~ payment_type_bin + fare_amount + pickup_hour"
    " + passenger_count + trip_distance + TrafficTimeBins"
)


@dataclass
class ModelSpec:
    """One model block: what to fit and with which hyperparameters"""

    name: str
    kind: str
    formula: Optional[str] = None
    features: Optional[List[str]] = None
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.kind not in MODEL_KINDS:
            raise ValueError(f"Unknown model kind {self.kind!r}, expected one of {MODEL_KINDS}")
        if (self.formula is None) == (self.features is None):
            raise ValueError(f"Model {self.name!r} needs exactly one of formula or features")
        if self.features is not None and not self.features:
            raise ValueError(f"Model {self.name!r} has an empty feature list")


def default_models() -> List[ModelSpec]:
    return [
        ModelSpec(
            name="elastic_net",
            kind="elastic_net",
            formula=ELASTIC_NET_FORMULA,
            params={"elasticNetParam": 0.5, "regParam": 0.01, "maxIter": 10},
        ),
        ModelSpec(
            name="random_forest",
            kind="random_forest",
            features=list(TREE_FEATURES),
            params={"numTrees": 25, "maxDepth": 5, "maxBins": 32, "seed": 1099},
        ),
        ModelSpec(
            name="gbt",
            kind="gbt",
            features=list(TREE_FEATURES),
            params={"maxIter": 10, "maxDepth": 5, "maxBins": 32, "seed": 1099},
        ),
    ]


@dataclass
class PipelineConfig:
    """Connection, data and run settings for the tip regression pipeline"""

    # Connection
    app_name: str = "NYC Taxi Tip Regression"
    master: Optional[str] = None  # None: use whatever spark-submit provides
    spark_conf: Dict[str, str] = field(default_factory=lambda: {
        "spark.sql.shuffle.partitions": "4",
        "spark.serializer": "org.apache.spark.serializer.KryoSerializer",
    })

    # Data
    data_path: str = "/HdiSamples/HdiSamples/NYCTaxi/JoinedParquetSampledFile"
    table_name: str = "joined_table"
    label_col: str = "tip_amount"

    # Split
    train_fraction: float = 0.75
    test_fraction: float = 0.25
    split_seed: int = 1099

    # Local sampling for plots and R²
    sample_fraction: float = 0.1
    sample_seed: int = 123
    sample_limit: int = 5000

    # Outputs
    output_dir: str = "outputs"
    model_dir: Optional[str] = None

    models: List[ModelSpec] = field(default_factory=default_models)

    def __post_init__(self):
        if self.train_fraction <= 0 or self.test_fraction <= 0:
            raise ValueError("Split fractions must be positive")
        if not 0 < self.sample_fraction <= 1:
            raise ValueError(f"sample_fraction must be in (0, 1], got {self.sample_fraction}")
        if self.sample_limit <= 0:
            raise ValueError(f"sample_limit must be positive, got {self.sample_limit}")
        if not self.models:
            raise ValueError("At least one model must be configured")

    @property
    def fractions(self) -> Dict[str, float]:
        return {"training": self.train_fraction, "test": self.test_fraction}

    def select_models(self, names: List[str]) -> None:
        """Keep only the named model blocks, in the given order"""
        by_name = {m.name: m for m in self.models}
        unknown = [n for n in names if n not in by_name]
        if unknown:
            raise ValueError(f"Unknown models {unknown}, available: {sorted(by_name)}")
        self.models = [by_name[n] for n in names]

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "PipelineConfig":
        """Load configuration from environment variables over the defaults"""
        env = os.environ if environ is None else environ
        kwargs: Dict[str, Any] = {}

        def _set(key: str, name: str, cast=str):
            value = env.get(f"TAXI_TIPS_{key}")
            if value not in (None, ""):
                kwargs[name] = cast(value)

        _set("APP_NAME", "app_name")
        _set("MASTER", "master")
        _set("DATA_PATH", "data_path")
        _set("TABLE_NAME", "table_name")
        _set("TRAIN_FRACTION", "train_fraction", float)
        _set("TEST_FRACTION", "test_fraction", float)
        _set("SPLIT_SEED", "split_seed", int)
        _set("SAMPLE_FRACTION", "sample_fraction", float)
        _set("SAMPLE_SEED", "sample_seed", int)
        _set("SAMPLE_LIMIT", "sample_limit", int)
        _set("OUTPUT_DIR", "output_dir")
        _set("MODEL_DIR", "model_dir")

        return cls(**kwargs)
