# Notes:
# - The three families share one interface; invalid hyperparameters fail before fitting.

import numpy as np
import pytest

from cellseg.exceptions import ConfigurationError, DataError
from cellseg.models import (
    FAMILIES,
    GBM,
    RF,
    SVM,
    estimate_rbf_sigma,
    get_family,
    mtry_sequence,
    positive_proba,
    svm_cost_sequence,
)


def test_registry_contains_three_families():
    assert list(FAMILIES) == ["gbm", "svm", "rf"]
    assert get_family("RF") is RF


def test_unknown_family_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        get_family("knn")


@pytest.mark.parametrize(
    "family, params",
    [
        (GBM, {"depth": 3}),
        (GBM, {"n_estimators": 0}),
        (GBM, {"learning_rate": -0.1}),
        (GBM, {"max_depth": 2.5}),
        (SVM, {"C": 0}),
        (SVM, {"gamma": "auto"}),
        (RF, {"max_features": 0}),
        (RF, {"max_features": "all"}),
    ],
)
def test_invalid_hyperparameters_are_rejected(family, params):
    with pytest.raises(ConfigurationError):
        family.build(params)


def test_build_applies_parameters():
    gbm = GBM.build({"max_depth": 2, "n_estimators": 30, "learning_rate": 0.1, "min_samples_leaf": 20})
    assert gbm.get_params()["max_depth"] == 2
    assert gbm.get_params()["n_estimators"] == 30

    svm = SVM.build({"C": 4.0, "gamma": 0.05})
    assert svm.get_params()["model__estimator__C"] == 4.0
    assert svm.get_params()["model__estimator__gamma"] == 0.05
    assert svm.named_steps["scaler"] is not None  # Centering/scaling inside the estimator

    rf = RF.build({"max_features": np.int64(3)})
    assert rf.get_params()["max_features"] == 3


def test_mtry_sequence_matches_reference_width():
    assert mtry_sequence(58) == [2, 30, 58]
    assert mtry_sequence(3) == [2, 3]
    assert mtry_sequence(1) == [1]


def test_svm_costs_are_powers_of_two():
    assert svm_cost_sequence(9) == [0.25, 0.5, 1.0, 2.0, 4.0, 8.0, 16.0, 32.0, 64.0]


def test_rbf_sigma_is_positive_and_seeded(train_test):
    X_train = train_test[0]
    sigma = estimate_rbf_sigma(X_train, seed=1)
    assert sigma > 0
    assert sigma == estimate_rbf_sigma(X_train, seed=1)


def test_default_svm_grid_is_valid(train_test):
    space = SVM.default_search_space(train_test[0])
    assert len(space) == 9
    assert len(space.grid["gamma"]) == 1


def test_fit_and_positive_proba(train_test):
    X_train, X_test, y_train, _ = train_test
    model = RF.fit(X_train, y_train, {"max_features": 2, "n_estimators": 25})

    proba = positive_proba(model, X_test, "PS")
    assert proba.shape == (len(X_test),)
    assert np.all((proba >= 0) & (proba <= 1))

    with pytest.raises(DataError):
        positive_proba(model, X_test, "XX")


def test_seed_reaches_estimators_and_default_grid(train_test):
    X_train = train_test[0]

    assert GBM.build({}, seed=5).random_state == 5
    assert RF.build({}, seed=5).random_state == 5
    assert SVM.build({}, seed=5).get_params()["model__estimator__random_state"] == 5

    space = SVM.default_search_space(X_train, seed=5)
    assert space.grid["gamma"] == [estimate_rbf_sigma(X_train, seed=5)]


def test_svm_probabilities_are_calibrated_without_deprecated_flag(train_test):
    X_train, X_test, y_train, _ = train_test
    model = SVM.fit(X_train, y_train, {"C": 1.0, "gamma": 0.1})

    assert model.named_steps["model"].estimator.probability is False
    proba = positive_proba(model, X_test, "PS")
    assert np.all((proba >= 0) & (proba <= 1))
    assert set(model.predict(X_test)) <= {"PS", "WS"}
