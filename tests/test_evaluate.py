# Notes:
# - Confusion matrix accounting, metric ranges, ROC monotonicity, AUC of a non-discriminating model.
# - Plot helpers write their files.

import numpy as np
import pandas as pd
import pytest
from sklearn.dummy import DummyClassifier

from cellseg.evaluate import (
    compute_roc,
    evaluate_model,
    feature_importance,
    plot_confusion_matrix,
    plot_feature_importance,
    plot_probability_histogram,
    plot_tuning_profile,
    save_roc_plot,
)
from cellseg.models import RF, SVM


@pytest.fixture(scope="module")
def rf_evaluation(train_test):
    X_train, X_test, y_train, y_test = train_test
    model = RF.fit(X_train, y_train, {"max_features": 3, "n_estimators": 50})
    return model, evaluate_model("Random Forest", model, X_test, y_test)


def test_confusion_matrix_counts_sum_to_test_size(train_test, rf_evaluation):
    _, result = rf_evaluation
    y_test = train_test[3]

    assert int(result.confusion.to_numpy().sum()) == len(y_test)
    assert list(result.confusion.index) == ["PS", "WS"]
    # Column totals are the reference class counts
    assert result.confusion["PS"].sum() == (y_test == "PS").sum()


def test_metrics_are_in_unit_interval(rf_evaluation):
    _, result = rf_evaluation
    for name in ("accuracy", "sensitivity", "specificity", "ppv", "npv", "balanced_accuracy", "roc_auc"):
        assert 0.0 <= result.metrics()[name] <= 1.0
    assert result.auc > 0.5  # Separable synthetic classes


def test_roc_is_monotone(rf_evaluation):
    _, result = rf_evaluation
    roc = result.roc

    assert (np.diff(roc["fpr"]) >= 0).all()
    assert (np.diff(roc["tpr"]) >= 0).all()
    assert roc["fpr"].iloc[0] == 0 and roc["tpr"].iloc[0] == 0
    assert roc["fpr"].iloc[-1] == 1 and roc["tpr"].iloc[-1] == 1


def test_non_discriminating_model_has_auc_half(train_test):
    X_train, X_test, y_train, y_test = train_test
    model = DummyClassifier(strategy="prior").fit(X_train, y_train)

    result = evaluate_model("Chance", model, X_test, y_test)
    assert result.auc == pytest.approx(0.5)

    # Every prediction is the majority class (PS): nothing is predicted WS
    assert result.sensitivity == 1.0
    assert result.specificity == 0.0
    assert np.isnan(result.npv)  # No negative predictions, so the ratio is undefined
    assert result.to_dict()["npv"] != 0.0


def test_compute_roc_uses_positive_label():
    roc = compute_roc(["PS", "WS", "PS", "WS"], [0.9, 0.1, 0.8, 0.2], positive_label="PS")
    # Perfect ranking: the curve reaches tpr=1 before any false positive
    assert roc.loc[roc["fpr"] == 0, "tpr"].max() == 1.0


def test_feature_importance_for_trees_only(train_test, rf_evaluation):
    model, _ = rf_evaluation
    X_train, _, y_train, _ = train_test

    importance = feature_importance(model, X_train.columns)
    assert importance.sum() == pytest.approx(100.0)
    assert importance.is_monotonic_decreasing

    svm = SVM.fit(X_train, y_train, {"C": 1.0, "gamma": 0.1})
    assert feature_importance(svm, X_train.columns) is None


def test_evaluation_plots_are_written(train_test, rf_evaluation, tmp_path):
    model, result = rf_evaluation
    X_train, _, y_train, y_test = train_test

    plot_confusion_matrix(result, "Confusion Matrix", tmp_path / "cm.png")
    save_roc_plot([result], tmp_path / "roc.png")
    plot_probability_histogram(result, y_test, tmp_path / "proba.png")
    plot_feature_importance(feature_importance(model, X_train.columns), "Importance", tmp_path / "imp.png")

    results = pd.DataFrame(
        {"n_estimators": [10, 20, 10, 20], "max_depth": [1, 1, 2, 2], "roc_auc": [0.7, 0.75, 0.72, 0.8]}
    )
    plot_tuning_profile(results, "n_estimators", "roc_auc", "Profile", tmp_path / "profile.png", hue="max_depth")

    for name in ("cm.png", "roc.png", "proba.png", "imp.png", "profile.png"):
        assert (tmp_path / name).exists()


def test_to_dict_is_json_friendly(rf_evaluation):
    _, result = rf_evaluation
    payload = result.to_dict()

    assert payload["model"] == "Random Forest"
    assert np.asarray(payload["confusion_matrix"]["counts"]).shape == (2, 2)
