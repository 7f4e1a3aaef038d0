# Databricks notebook source
# MAGIC %md
# MAGIC # **NYC Taxi Tip Amount Regression**
# MAGIC
# MAGIC This notebook predicts the **tip amount** of a NYC yellow taxi trip from the joined trip + fare dataset.
# MAGIC
# MAGIC ---
# MAGIC
# MAGIC ## **Notebook Structure**
# MAGIC
# MAGIC - **1. Connection**: attach to the Spark cluster.
# MAGIC - **2. Data Loading**: read the joined parquet dataset and cache it.
# MAGIC - **3. Feature Transformation**: binarize `payment_type`, bucketize `pickup_hour`.
# MAGIC - **4. Train/Test Split**: 75% / 25% with a fixed seed.
# MAGIC - **5. Elastic Net**, **6. Random Forest**, **7. Gradient-Boosted Trees**: fit, score, sample and plot.
# MAGIC - **8. Clean up**: uncache and disconnect.
# MAGIC
# MAGIC The same steps run non-interactively with `python -m taxi_tips`.

# COMMAND ----------

# MAGIC %md
# MAGIC #####Adjust connection mode, data path and sample size in the block below.

# COMMAND ----------

import logging

from taxi_tips import data, evaluation, features, models, plotting, session
from taxi_tips.config import PipelineConfig

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

config = PipelineConfig.from_env()
# config.master = "yarn"
# config.data_path = "/HdiSamples/HdiSamples/NYCTaxi/JoinedParquetSampledFile"
config.sample_fraction = 0.1
config.output_dir = "/dbfs/FileStore/taxi_tips/plots"

# COMMAND ----------

# MAGIC %md
# MAGIC ## 1.0 Connection
# MAGIC
# MAGIC - **Spark Session**: created (or reused) with the app name, the optional master, and the tuning in `config.spark_conf`:
# MAGIC   - 4 shuffle partitions,
# MAGIC   - Kryo serialization.

# COMMAND ----------

spark = session.connect(config)

# COMMAND ----------

# MAGIC %md
# MAGIC ## 2.0 Data Loading
# MAGIC
# MAGIC The joined trip + fare table is read from parquet, registered as `joined_table` and **cached**, since every model block below reads it again.
# MAGIC
# MAGIC The loader checks that `trip_distance`, `payment_type`, `pickup_hour`, `passenger_count`, `fare_amount`, `tip_amount` and `TrafficTimeBins` are present.

# COMMAND ----------

joined_df = data.load_joined(spark, config.data_path, config.table_name)
joined_df.printSchema()
joined_df.show(5)

# COMMAND ----------

# MAGIC %md
# MAGIC ## 3.0 Feature Transformation
# MAGIC
# MAGIC - **payment_type_bin**: `StringIndexer` ranks payment types by frequency, the `Binarizer` (threshold 0.5) then separates the most frequent type (0) from all others (1).
# MAGIC - **pickup_hour_bin**: `Bucketizer` with splits `[0, 6, 10, 16, 20, 24]` (night, AM rush, midday, PM rush, evening).

# COMMAND ----------

transformed_df = features.transform(joined_df)
transformed_df.select("payment_type", "payment_type_bin", "pickup_hour", "pickup_hour_bin").show(10)

# COMMAND ----------

# MAGIC %md
# MAGIC ## 4.0 Train/Test Split

# COMMAND ----------

partitions = data.partition(transformed_df, seed=config.split_seed, **config.fractions)
train_df, test_df = partitions["training"], partitions["test"]

# COMMAND ----------

specs = {spec.name: spec for spec in config.models}
r2_by_model = {}


def evaluate_block(fitted):
    predictions = models.score(fitted, test_df)
    rmse = evaluation.rmse(predictions, config.label_col)
    local = evaluation.sample_local(
        predictions, config.sample_fraction, config.sample_seed,
        [config.label_col, "prediction"], config.sample_limit,
    )
    r2 = evaluation.r_squared(local[config.label_col], local["prediction"])
    plotting.plot_predictions(local, config.label_col, fitted.spec.name, r2, config.output_dir)

    print(f"\n{fitted.spec.name} Performance Summary:")
    print(f"  Train time       : {fitted.train_time:.2f} s")
    print(f"  RMSE (test)      : {rmse:.4f}")
    print(f"  R² (sampled)     : {r2:.4f}")
    return r2

# COMMAND ----------

# MAGIC %md
# MAGIC ## 5.0 Elastic Net
# MAGIC
# MAGIC Linear regression with a mixed L1/L2 penalty (`elasticNetParam=0.5`, `regParam=0.01`), fitted against the formula
# MAGIC `tip_amount ~ payment_type_bin + fare_amount + pickup_hour + passenger_count + trip_distance + TrafficTimeBins`.
# MAGIC `RFormula` one-hot encodes the `TrafficTimeBins` string column.

# COMMAND ----------

fitted = models.fit(specs["elastic_net"], train_df, config.label_col)

terms, intercept = models.coefficients(fitted, train_df)
print(f"Intercept: {intercept:.4f}")
for term, value in terms:
    print(f"{term:<35} : {value:.4f}")

r2_by_model["elastic_net"] = evaluate_block(fitted)
del fitted

# COMMAND ----------

# MAGIC %md
# MAGIC ## 6.0 Random Forest
# MAGIC
# MAGIC - **25 trees**, **max depth 5**, **32 bins**.
# MAGIC - Explicit feature list assembled with `VectorAssembler`, so importances map straight back to column names.

# COMMAND ----------

fitted = models.fit(specs["random_forest"], train_df, config.label_col)

importances = models.feature_importances(fitted)
print("Top feature importances:")
for feature, importance in importances:
    print(f"{feature:<25} : {importance:.4f}")
plotting.plot_importances(importances, "random_forest", config.output_dir)

r2_by_model["random_forest"] = evaluate_block(fitted)
del fitted

# COMMAND ----------

# MAGIC %md
# MAGIC ## 7.0 Gradient-Boosted Trees
# MAGIC
# MAGIC - **10 boosting iterations**, **max depth 5**, **32 bins**, same features as the random forest.

# COMMAND ----------

fitted = models.fit(specs["gbt"], train_df, config.label_col)

importances = models.feature_importances(fitted)
print("Top feature importances:")
for feature, importance in importances:
    print(f"{feature:<25} : {importance:.4f}")
plotting.plot_importances(importances, "gbt", config.output_dir)

r2_by_model["gbt"] = evaluate_block(fitted)
del fitted

# COMMAND ----------

plotting.plot_comparison(r2_by_model, config.output_dir)

# COMMAND ----------

# MAGIC %md
# MAGIC ## 8.0 Clean up
# MAGIC
# MAGIC We uncache the joined table to free executor memory and stop the session.

# COMMAND ----------

data.uncache(spark, config.table_name)
session.disconnect(spark)
