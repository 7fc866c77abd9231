import math
import unittest
import numpy as np
from sklearn import metrics

from preprocessing.formula import ModelFormula
from preprocessing.partition import stratified_split
from models.classifiers import DecisionTreeClassifier
from models.evaluation import ModelEvaluator, majority_baseline
from utils.exceptions import InvalidParameter
from tests.helpers import make_separable_dataset


class TestModelEvaluator(unittest.TestCase):

    def setUp(self):
        self.evaluator = ModelEvaluator()
        self.actual = ['a', 'a', 'a', 'a', 'a', 'b', 'b', 'b', 'c', 'c']
        self.predicted = ['a', 'a', 'a', 'b', 'c', 'b', 'b', 'a', 'b', 'b']

    def test_confusion_matrix(self):
        result = self.evaluator.evaluate_predictions(self.actual, self.predicted)

        self.assertEqual(result.labels, ['a', 'b', 'c'])
        np.testing.assert_array_equal(
            result.confusion_matrix.to_numpy(),
            [[3, 1, 1],
             [1, 2, 0],
             [0, 2, 0]]
        )
        self.assertEqual(result.confusion_matrix.index.name, 'actual')
        self.assertEqual(result.confusion_matrix.columns.name, 'predicted')
        self.assertEqual(int(result.confusion_matrix.to_numpy().sum()), 10)
        self.assertEqual(result.confusion_counts()[('b', 'a')], 1)

    def test_accuracy_and_per_class(self):
        result = self.evaluator.evaluate_predictions(self.actual, self.predicted)

        self.assertAlmostEqual(result.accuracy, 0.5)
        self.assertEqual(result.n_correct, 5)
        self.assertAlmostEqual(result.precision('a'), 3 / 4)
        self.assertAlmostEqual(result.precision('b'), 2 / 5)
        self.assertAlmostEqual(result.precision('c'), 0.0)
        self.assertAlmostEqual(result.recall('a'), 3 / 5)
        self.assertAlmostEqual(result.recall('b'), 2 / 3)
        self.assertAlmostEqual(result.recall('c'), 0.0)
        self.assertAlmostEqual(result.f1('a'), 2 * 0.75 * 0.6 / 1.35)
        self.assertEqual(result.f1('c'), 0.0)
        self.assertEqual(result.per_class['support'].tolist(), [5, 3, 2])

    def test_kappa(self):
        result = self.evaluator.evaluate_predictions(self.actual, self.predicted)
        self.assertAlmostEqual(result.kappa, (0.5 - 0.37) / 0.63)

        perfect = self.evaluator.evaluate_predictions(['x', 'y', 'x'], ['x', 'y', 'x'])
        self.assertAlmostEqual(perfect.kappa, 1.0)

        constant = self.evaluator.evaluate_predictions(['x', 'x'], ['x', 'x'])
        self.assertTrue(math.isnan(constant.kappa))

    def test_undefined_precision_is_nan(self):
        result = self.evaluator.evaluate_predictions(['a', 'a', 'b', 'b'], ['a', 'a', 'a', 'a'])

        self.assertTrue(math.isnan(result.precision('b')))
        self.assertEqual(result.recall('b'), 0.0)
        self.assertTrue(math.isnan(result.f1('b')))
        self.assertAlmostEqual(result.precision('a'), 0.5)
        self.assertAlmostEqual(result.macro_f1, 2 * 0.5 * 1.0 / 1.5)

    def test_labels_absent_from_test_set(self):
        result = self.evaluator.evaluate_predictions(['a', 'b'], ['a', 'b'], labels=['a', 'b', 'c'])
        self.assertEqual(result.labels, ['a', 'b', 'c'])
        self.assertTrue(math.isnan(result.precision('c')))
        self.assertTrue(math.isnan(result.recall('c')))
        self.assertEqual(result.per_class.loc['c', 'support'], 0)

    def test_single_observed_label_with_wider_label_set(self):
        result = self.evaluator.evaluate_predictions(['x', 'x'], ['x', 'x'], labels=['x', 'y'])
        self.assertAlmostEqual(result.accuracy, 1.0)
        self.assertTrue(math.isnan(result.kappa))
        np.testing.assert_array_equal(result.confusion_matrix.to_numpy(), [[2, 0], [0, 0]])

    def test_metrics_agree_with_sklearn(self):
        result = self.evaluator.evaluate_predictions(self.actual, self.predicted)
        labels = ['a', 'b', 'c']
        np.testing.assert_allclose(
            result.per_class['precision'].to_numpy(),
            metrics.precision_score(self.actual, self.predicted, labels=labels, average=None,
                                    zero_division=0))
        np.testing.assert_allclose(
            result.per_class['recall'].to_numpy(),
            metrics.recall_score(self.actual, self.predicted, labels=labels, average=None))
        self.assertAlmostEqual(result.kappa, metrics.cohen_kappa_score(self.actual, self.predicted))

    def test_majority_baseline(self):
        actual = ['good'] * 210 + ['bad'] * 90
        result = self.evaluator.evaluate_predictions(actual, ['good'] * 300)

        self.assertEqual(result.majority_class, 'good')
        self.assertAlmostEqual(result.baseline_accuracy, 0.70)
        self.assertAlmostEqual(result.accuracy, 0.70)
        self.assertAlmostEqual(result.lift, 0.0)
        self.assertFalse(result.beats_baseline)
        self.assertGreater(result.p_value_vs_baseline, 0.05)

        low, high = result.accuracy_ci
        self.assertTrue(0 <= low <= result.accuracy <= high <= 1)

        self.assertEqual(majority_baseline(actual), ('good', 0.7))
        self.assertEqual(majority_baseline(['b', 'a', 'a', 'b'])[0], 'a')

    def test_accuracy_bounds(self):
        rng = np.random.RandomState(0)
        for _ in range(20):
            actual = rng.choice(['p', 'q', 'r'], 50)
            predicted = rng.choice(['p', 'q', 'r'], 50)
            result = self.evaluator.evaluate_predictions(actual, predicted)
            self.assertGreaterEqual(result.accuracy, 0.0)
            self.assertLessEqual(result.accuracy, 1.0)
            self.assertEqual(int(result.confusion_matrix.to_numpy().sum()), 50)
            self.assertAlmostEqual(result.accuracy, float(np.mean(actual == predicted)))

    def test_invalid_inputs(self):
        with self.assertRaises(InvalidParameter):
            self.evaluator.evaluate_predictions(['a', 'b'], ['a'])
        with self.assertRaises(InvalidParameter):
            self.evaluator.evaluate_predictions([], [])
        with self.assertRaises(InvalidParameter):
            ModelEvaluator(confidence_level=1.5)
        with self.assertRaises(InvalidParameter):
            majority_baseline([])

    def test_evaluate_model_on_test_split(self):
        dataset = make_separable_dataset(n_per_class=40, seed=1)
        split = stratified_split(dataset, 'label', 0.7, seed=2)
        formula = ModelFormula.resolve(dataset, 'label')
        model = DecisionTreeClassifier().fit(split.train_dataset(dataset), formula)

        result = self.evaluator.evaluate(model, split.test_dataset(dataset))
        self.assertEqual(result.n_samples, split.n_test)
        self.assertEqual(int(result.confusion_matrix.to_numpy().sum()), split.n_test)
        self.assertEqual(result.model_name, 'decision_tree')
        self.assertTrue(result.beats_baseline)

        summary = result.to_dict()
        self.assertEqual(summary['n_samples'], split.n_test)
        self.assertIn('f1[a]', summary)


if __name__ == '__main__':
    unittest.main()
