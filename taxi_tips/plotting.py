"""Local plots of sampled predictions and model diagnostics"""

import logging
import math
import os
from typing import Dict, List, Tuple

import matplotlib
matplotlib.use("Agg")  # no display on cluster edge nodes
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

COLORS = {
    "points": "#1f77b4",
    "fit": "#d62728",
    "bars": "#2ca02c",
}


def _output_path(output_dir: str, filename: str) -> str:
    os.makedirs(output_dir, exist_ok=True)
    return os.path.join(output_dir, filename)


def plot_predictions(
    local: pd.DataFrame,
    label_col: str,
    name: str,
    r2: float,
    output_dir: str,
    prediction_col: str = "prediction",
) -> str:
    """Scatter actual vs predicted tips with a least-squares line; returns the PNG path"""
    fig, ax = plt.subplots(figsize=(8, 6))
    ax.scatter(local[label_col], local[prediction_col], s=6, alpha=0.4,
               color=COLORS["points"], edgecolor="none")

    # Trend line only when there is something to fit
    if len(local) >= 2 and local[label_col].nunique() > 1:
        z = np.polyfit(local[label_col], local[prediction_col], 1)
        xs = np.linspace(local[label_col].min(), local[label_col].max(), 100)
        ax.plot(xs, np.polyval(z, xs), color=COLORS["fit"], linewidth=2,
                label=f"fit: y = {z[0]:.2f}x + {z[1]:.2f}")
        ax.legend(loc="upper left")

    r2_text = "n/a" if math.isnan(r2) else f"{r2:.3f}"
    ax.set_xlabel("Actual tip amount ($)")
    ax.set_ylabel("Predicted tip amount ($)")
    ax.set_title(f"{name}: actual vs predicted (R² = {r2_text}, n = {len(local)})")
    ax.grid(True, alpha=0.3)

    path = _output_path(output_dir, f"{name}_predictions.png")
    plt.tight_layout()
    plt.savefig(path, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved prediction plot to {path}")
    return path


def plot_importances(importances: List[Tuple[str, float]], name: str, output_dir: str) -> str:
    """Horizontal bar chart of feature importances"""
    imp = pd.Series(dict(importances)).sort_values()

    fig, ax = plt.subplots(figsize=(8, max(3, 0.5 * len(imp) + 1)))
    imp.plot(kind="barh", ax=ax, color=COLORS["bars"], alpha=0.85, edgecolor="none")
    ax.set_xlabel("Feature importance")
    ax.set_title(f"{name}: feature importance")
    ax.grid(True, alpha=0.3, axis="x")

    path = _output_path(output_dir, f"{name}_importances.png")
    plt.tight_layout()
    plt.savefig(path, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved importance plot to {path}")
    return path


def plot_comparison(r2_by_model: Dict[str, float], output_dir: str) -> str:
    """R² of every model side by side"""
    names = list(r2_by_model)
    values = [0.0 if math.isnan(v) else v for v in r2_by_model.values()]

    fig, ax = plt.subplots(figsize=(max(5, 2 * len(names)), 5))
    bars = ax.bar(np.arange(len(names)), values, color=COLORS["bars"], alpha=0.85, width=0.5)
    ax.set_xticks(np.arange(len(names)))
    ax.set_xticklabels(names)
    ax.set_ylabel("R² (sampled test predictions)")
    ax.set_ylim(0, 1)
    ax.set_title("Tip amount models")
    for bar, value in zip(bars, values):
        ax.text(bar.get_x() + bar.get_width() / 2, value + 0.01, f"{value:.3f}",
                ha="center", va="bottom")

    path = _output_path(output_dir, "model_comparison.png")
    plt.tight_layout()
    plt.savefig(path, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved comparison plot to {path}")
    return path
