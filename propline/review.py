"""Grade past analyses against actual results and summarise model accuracy."""

from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Mapping, Optional
import logging

import pandas as pd

from propline.constants import RECOMMENDATION_SKIP
from propline.exceptions import AnalysisNotFoundError, ProjectionNotFoundError
from propline.pipeline import parse_line_score
from propline.storage import ProjectionStore

logger = logging.getLogger(__name__)


@dataclass
class ModelAccuracyMetrics:
    model_version: str
    total_predictions: int  # graded, pushes excluded
    correct_predictions: int
    accuracy_percent: float
    average_confidence: float
    pushes: int = 0

    def to_dict(self) -> Dict:
        return asdict(self)


def grade_outcome(line_score: float, actual_value: float) -> str:
    if actual_value > line_score:
        return "over"
    if actual_value < line_score:
        return "under"
    return "push"


def evaluate_analysis(
    store: ProjectionStore,
    analysis_id: int,
    actual_value: float,
    model_version: str = "v1",
) -> Optional[Dict]:
    """Record how an analysis fared once the real stat value is known.

    Skip recommendations are not graded and return None. A push is recorded
    with is_correct left empty. The projection is marked completed.
    """
    analysis = store.get_analysis_by_id(analysis_id)
    if analysis is None:
        raise AnalysisNotFoundError(analysis_id)
    if analysis["recommendation"] == RECOMMENDATION_SKIP:
        logger.info("Analysis %s was a skip; nothing to grade", analysis_id)
        return None

    projection_id = analysis["projection_id"]
    projection = store.get_projection_by_id(projection_id)
    if projection is None:
        raise ProjectionNotFoundError(projection_id)

    line = parse_line_score(projection["line_score"], projection_id)
    outcome = grade_outcome(line, actual_value)
    is_correct = None if outcome == "push" else outcome == analysis["recommendation"]

    record_id = store.record_model_performance(
        analysis_id=analysis_id,
        projection_id=projection_id,
        prediction=analysis["recommendation"],
        confidence=analysis["confidence_score"],
        actual_outcome=outcome,
        is_correct=is_correct,
        model_version=model_version,
    )
    store.set_projection_status(projection_id, "completed")
    logger.info(
        "Graded analysis %s: predicted %s, actual %s (%s vs line %s)",
        analysis_id, analysis["recommendation"], outcome, actual_value, line,
    )
    return {
        "id": record_id,
        "analysis_id": analysis_id,
        "projection_id": projection_id,
        "prediction": analysis["recommendation"],
        "actual_outcome": outcome,
        "is_correct": is_correct,
        "model_version": model_version,
    }


def summarize_accuracy(rows: Iterable[Mapping]) -> List[ModelAccuracyMetrics]:
    """Accuracy per model version from model_performance rows."""
    df = pd.DataFrame(list(rows))
    if df.empty:
        return []

    df["model_version"] = df["model_version"].fillna("unknown")
    df["graded"] = df["is_correct"].notna()
    df["correct"] = df["is_correct"].map(lambda value: bool(value) if pd.notna(value) else False)

    metrics = []
    for version, group in df.groupby("model_version", sort=True):
        graded = int(group["graded"].sum())
        correct = int(group["correct"].sum())
        accuracy = round(correct / graded * 100, 1) if graded else 0.0
        metrics.append(ModelAccuracyMetrics(
            model_version=str(version),
            total_predictions=graded,
            correct_predictions=correct,
            accuracy_percent=accuracy,
            average_confidence=round(float(group["prediction_confidence"].mean()), 1),
            pushes=len(group) - graded,
        ))
    return metrics
