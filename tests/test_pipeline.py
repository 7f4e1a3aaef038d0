import math
import os

import pytest

from taxi_tips import data, pipeline, session
from taxi_tips.config import PipelineConfig


@pytest.fixture
def config(trips_parquet, tmp_path):
    return PipelineConfig(
        master="local[1]",
        data_path=trips_parquet,
        table_name="joined_pipeline_test",
        sample_fraction=1.0,
        spark_conf={"spark.sql.shuffle.partitions": "2"},
        output_dir=str(tmp_path / "plots"),
    )


def test_run_all_model_blocks(spark, config):
    results = pipeline.run(config, spark=spark)

    assert [r.name for r in results] == ["elastic_net", "random_forest", "gbt"]
    for r in results:
        assert math.isnan(r.r2) or 0.0 <= r.r2 <= 1.0
        assert r.rmse >= 0
        assert r.sample_rows > 0
        assert all(os.path.exists(p) for p in r.plots)
        assert r.saved_path is None

    linear, forest, boosted = results
    assert linear.coefficients and linear.intercept is not None
    assert not linear.importances
    assert forest.importances and boosted.importances
    assert len(forest.plots) == 2
    assert os.path.exists(os.path.join(config.output_dir, "model_comparison.png"))

    # table released, caller's session left running
    assert not spark.catalog.tableExists(config.table_name)
    assert spark.range(1).count() == 1


def test_run_saves_models_when_model_dir_set(spark, config, tmp_path):
    config.model_dir = str(tmp_path / "models")
    config.select_models(["random_forest"])

    (result,) = pipeline.run(config, spark=spark)

    assert result.saved_path.startswith(config.model_dir)
    assert os.path.isdir(result.saved_path)
    assert not os.path.exists(os.path.join(config.output_dir, "model_comparison.png"))


def test_run_uncaches_on_failure(spark, config, trips_df, tmp_path):
    path = str(tmp_path / "bad.parquet")
    trips_df.drop("TrafficTimeBins").write.parquet(path)
    config.data_path = path

    with pytest.raises(ValueError, match="TrafficTimeBins"):
        pipeline.run(config, spark=spark)

    assert not spark.catalog.tableExists(config.table_name)


def test_build_config_from_args():
    args = pipeline.parse_args([
        "--master", "yarn", "--data-path", "/data/joined", "--seed", "7",
        "--sample-fraction", "0.2", "--models", "gbt", "elastic_net",
    ])

    config = pipeline.build_config(args, environ={"TAXI_TIPS_OUTPUT_DIR": "/tmp/plots"})

    assert config.master == "yarn"
    assert config.data_path == "/data/joined"
    assert config.split_seed == 7
    assert config.sample_fraction == 0.2
    assert config.output_dir == "/tmp/plots"
    assert [m.name for m in config.models] == ["gbt", "elastic_net"]


def test_build_config_rejects_bad_sample_fraction():
    args = pipeline.parse_args(["--sample-fraction", "2"])

    with pytest.raises(ValueError, match="sample_fraction"):
        pipeline.build_config(args, environ={})


def test_main_returns_error_code_for_unknown_model(monkeypatch):
    monkeypatch.setattr(pipeline.session, "connect", lambda config: pytest.fail("should not connect"))

    assert pipeline.main(["--models", "lasso"]) == 1


def test_run_drops_rows_with_null_features(spark, config, trips_df, tmp_path):
    null_fare = spark.createDataFrame(
        [(999, 3.0, "CRD", 14, 1, None, 1.5, "Midday")], trips_df.schema
    )
    path = str(tmp_path / "with_null.parquet")
    trips_df.union(null_fare).write.parquet(path)
    config.data_path = path
    config.select_models(["elastic_net"])

    (result,) = pipeline.run(config, spark=spark)

    assert math.isfinite(result.r2)
    assert math.isfinite(result.rmse)


def test_run_creates_and_stops_its_own_session(config, monkeypatch):
    config.select_models(["elastic_net"])
    real_connect = session.connect
    created = []

    def connect(cfg):
        created.append(real_connect(cfg))
        return created[-1]

    monkeypatch.setattr(session, "connect", connect)

    (result,) = pipeline.run(config)

    assert result.name == "elastic_net"
    (owned,) = created
    assert owned.sparkContext._jsc is None


def test_teardown_error_does_not_mask_run_error(spark, config, trips_df, tmp_path, monkeypatch):
    path = str(tmp_path / "bad.parquet")
    trips_df.drop("fare_amount").write.parquet(path)
    config.data_path = path
    disconnected = []

    def broken_uncache(spark, table_name):
        raise RuntimeError("catalog gone")

    monkeypatch.setattr(data, "uncache", broken_uncache)
    monkeypatch.setattr(session, "connect", lambda cfg: spark)
    monkeypatch.setattr(session, "disconnect", disconnected.append)

    with pytest.raises(ValueError, match="fare_amount"):
        pipeline.run(config)

    assert disconnected == [spark]


def test_teardown_error_raised_after_successful_run(spark, config, monkeypatch):
    config.select_models(["elastic_net"])

    def broken_uncache(spark, table_name):
        raise RuntimeError("catalog gone")

    monkeypatch.setattr(data, "uncache", broken_uncache)

    with pytest.raises(RuntimeError, match="catalog gone"):
        pipeline.run(config, spark=spark)

    spark.catalog.uncacheTable(config.table_name)
    spark.catalog.dropTempView(config.table_name)
