import unittest
import warnings
import numpy as np
from sklearn.dummy import DummyClassifier

from preprocessing.formula import ModelFormula
from models.classifiers import Classifier, DecisionTreeClassifier, SVMClassifier, TrainedModel
from models.tuning import HyperparameterGrid, GridSearchTuner, CancellationToken
from utils.exceptions import InvalidParameter, ComputationError, SearchCancelled
from tests.helpers import make_credit_dataset, make_separable_dataset


class MajorityClassifier(Classifier):
    """Always predicts the most frequent training label; ``fail`` makes fitting raise."""

    name = 'majority'

    def _validate(self, hyperparameters):
        params = {'tag': None, 'fail': False}
        params.update(hyperparameters)
        return params

    def _build_estimator(self):
        if self.hyperparameters['fail']:
            # constant strategy without a constant raises ValueError on fit
            return DummyClassifier(strategy='constant')
        return DummyClassifier(strategy='most_frequent')


class TestHyperparameterGrid(unittest.TestCase):

    def test_enumeration_order(self):
        grid = HyperparameterGrid({'sigma': [0.01, 0.1], 'C': [1, 10, 100]})
        self.assertEqual(len(grid), 6)
        self.assertEqual(grid.names, ['sigma', 'C'])
        self.assertEqual(grid.points(), [
            {'sigma': 0.01, 'C': 1},
            {'sigma': 0.01, 'C': 10},
            {'sigma': 0.01, 'C': 100},
            {'sigma': 0.1, 'C': 1},
            {'sigma': 0.1, 'C': 10},
            {'sigma': 0.1, 'C': 100},
        ])

    def test_from_dict_wraps_scalars(self):
        grid = HyperparameterGrid.from_dict({'sigma': 0.05, 'C': [0.5, 1.0]})
        self.assertEqual(len(grid), 2)
        self.assertEqual(grid.points()[0], {'sigma': 0.05, 'C': 0.5})

    def test_numpy_axis(self):
        grid = HyperparameterGrid({'C': np.array([0.25, 0.5])})
        self.assertEqual([p['C'] for p in grid.points()], [0.25, 0.5])

    def test_from_dict_keeps_numpy_axes(self):
        grid = HyperparameterGrid.from_dict({'C': np.array([0.5, 1.0, 2.0])})
        self.assertEqual(len(grid), 3)
        self.assertEqual([p['C'] for p in grid.points()], [0.5, 1.0, 2.0])

    def test_invalid_grids(self):
        for axes in ({}, {'C': []}, {'C': 'abc'}, {'C': [1, 1]}, {1: [1, 2]}, {'C': 5}):
            with self.assertRaises(InvalidParameter, msg=repr(axes)):
                HyperparameterGrid(axes)
        with self.assertRaises(InvalidParameter):
            HyperparameterGrid.from_dict([('C', [1])])


class TestGridSearchTuner(unittest.TestCase):

    def setUp(self):
        self.dataset = make_separable_dataset(n_per_class=30, seed=3)
        self.formula = ModelFormula.resolve(self.dataset, 'label')
        self.tuner = GridSearchTuner(folds=3, repeats=2, seed=5)

    def test_invalid_settings(self):
        with self.assertRaises(InvalidParameter):
            GridSearchTuner(folds=1)
        with self.assertRaises(InvalidParameter):
            GridSearchTuner(repeats=0)
        with self.assertRaises(InvalidParameter):
            GridSearchTuner(n_jobs=0)

    def test_selects_best_point(self):
        grid = HyperparameterGrid({'max_depth': [1, 3]})
        result = self.tuner.tune(DecisionTreeClassifier(), self.dataset, self.formula, grid)

        self.assertEqual(result.best_params, {'max_depth': 3})
        self.assertEqual(result.best_index, 1)
        self.assertIsInstance(result.best_model, TrainedModel)
        self.assertEqual(result.best_model.hyperparameters['max_depth'], 3)
        self.assertEqual(result.best_model.n_train, len(self.dataset))

        self.assertEqual(list(result.cv_results['param_max_depth']), [1, 3])
        self.assertEqual(result.fold_scores.shape, (2, 6))
        self.assertEqual(list(result.cv_results['n_fits']), [6, 6])
        self.assertAlmostEqual(result.best_score, result.fold_scores[1].mean())
        self.assertGreater(result.best_score, result.cv_results.loc[0, 'mean_accuracy'])
        self.assertEqual(result.n_failed, 0)

    def test_selection_ignores_grid_order(self):
        forward = self.tuner.tune(DecisionTreeClassifier(), self.dataset, self.formula,
                                  HyperparameterGrid({'max_depth': [1, 3]}))
        backward = self.tuner.tune(DecisionTreeClassifier(), self.dataset, self.formula,
                                   HyperparameterGrid({'max_depth': [3, 1]}))
        self.assertEqual(forward.best_params, backward.best_params)
        self.assertAlmostEqual(forward.best_score, backward.best_score)

    def test_ties_go_to_first_point(self):
        grid = HyperparameterGrid({'tag': ['b', 'a', 'c']})
        result = self.tuner.tune(MajorityClassifier(), self.dataset, self.formula, grid)

        scores = result.cv_results['mean_accuracy'].tolist()
        self.assertEqual(scores[0], scores[1])
        self.assertEqual(scores[1], scores[2])
        self.assertEqual(result.best_index, 0)
        self.assertEqual(result.best_params, {'tag': 'b'})

    def test_failing_point_is_skipped(self):
        grid = HyperparameterGrid({'fail': [True, False]})
        with self.assertWarns(UserWarning):
            result = self.tuner.tune(MajorityClassifier(), self.dataset, self.formula, grid)

        self.assertEqual(result.best_params, {'fail': False})
        self.assertEqual(result.n_failed, 1)
        self.assertEqual(list(result.cv_results['status']), ['failed', 'ok'])
        self.assertTrue(np.isnan(result.fold_scores[0]).all())
        self.assertIn('hyperparameters', result.cv_results.loc[0, 'error'])

    def test_all_points_failing(self):
        grid = HyperparameterGrid({'fail': [True]})
        with self.assertWarns(UserWarning):
            with self.assertRaises(ComputationError):
                self.tuner.tune(MajorityClassifier(), self.dataset, self.formula, grid)

    def test_cancelled_search(self):
        token = CancellationToken()
        token.cancel()
        self.assertTrue(token.cancelled)
        with self.assertRaises(SearchCancelled):
            self.tuner.tune(DecisionTreeClassifier(), self.dataset, self.formula,
                            HyperparameterGrid({'max_depth': [1, 2, 3]}), cancel_token=token)

    def test_parallel_matches_sequential(self):
        dataset = make_credit_dataset(n_samples=150, seed=4)
        formula = ModelFormula.resolve(dataset, 'Class')
        grid = {'max_depth': [2, 4], 'min_samples_leaf': [3, 10]}

        sequential = GridSearchTuner(folds=3, repeats=1, seed=1, n_jobs=1).tune(
            DecisionTreeClassifier(), dataset, formula, grid)
        parallel = GridSearchTuner(folds=3, repeats=1, seed=1, n_jobs=2).tune(
            DecisionTreeClassifier(), dataset, formula, grid)

        np.testing.assert_allclose(sequential.fold_scores, parallel.fold_scores)
        self.assertEqual(sequential.best_params, parallel.best_params)
        self.assertEqual(len(sequential.cv_results), 4)

    def test_parallel_search_leaves_warning_filters_alone(self):
        dataset = make_credit_dataset(n_samples=150, seed=6)
        formula = ModelFormula.resolve(dataset, 'Class')
        grid = {'max_iter': [1, -1]}

        statuses = []
        with warnings.catch_warnings(record=True):
            warnings.simplefilter('always')
            before = list(warnings.filters)
            for n_jobs in (1, 2):
                result = GridSearchTuner(folds=3, repeats=1, seed=2, n_jobs=n_jobs).tune(
                    SVMClassifier(sigma=0.05, C=1.0), dataset, formula, grid)
                statuses.append(list(result.cv_results['status']))
            after = list(warnings.filters)

        self.assertEqual(before, after)
        self.assertEqual(statuses, [['failed', 'ok'], ['failed', 'ok']])

    def test_tune_accepts_numpy_grid_values(self):
        result = self.tuner.tune(DecisionTreeClassifier(), self.dataset, self.formula,
                                 {'max_depth': np.array([1, 3])})
        self.assertEqual(len(result.cv_results), 2)
        self.assertEqual(result.best_params['max_depth'], 3)


if __name__ == '__main__':
    unittest.main()
