import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch, MagicMock
from urllib.error import URLError

import numpy as np
import pandas as pd

from data.dataset import Dataset, ColumnKind, infer_column_kind
from data.loaders import DelimitedTextLoader, load_dataset
from utils.exceptions import InvalidParameter, LoadError
from tests.helpers import make_credit_frame


CSV_TEXT = (
    "Duration,Amount,Housing,Notes,Class\n"
    "12,1500,own,paid on time,good\n"
    "36,7200,rent,late twice,bad\n"
    "24,3100,own,no remarks,good\n"
    "48,9800,free,disputed charge,bad\n"
)


class TestDataset(unittest.TestCase):

    def setUp(self):
        self.frame = make_credit_frame(n_samples=100, seed=1)
        self.dataset = Dataset.from_frame(self.frame, name='credit')

    def test_kind_inference(self):
        self.assertEqual(self.dataset.kind('Duration'), ColumnKind.NUMERIC)
        self.assertEqual(self.dataset.kind('Amount'), ColumnKind.NUMERIC)
        self.assertEqual(self.dataset.kind('Housing'), ColumnKind.CATEGORICAL)
        self.assertEqual(self.dataset.kind('Class'), ColumnKind.CATEGORICAL)

        notes = pd.Series([f"note number {i}" for i in range(50)])
        self.assertEqual(infer_column_kind(notes, max_categories=20), ColumnKind.TEXT)
        self.assertEqual(infer_column_kind(pd.Series([True, False, True])), ColumnKind.CATEGORICAL)

    def test_explicit_kinds_override_inference(self):
        frame = pd.DataFrame({'grade': [1, 2, 1, 2], 'score': [0.1, 0.5, 0.3, 0.9]})
        dataset = Dataset.from_frame(frame, kinds={'grade': 'categorical'})
        self.assertTrue(dataset.is_categorical('grade'))
        self.assertEqual(dataset.kind('score'), ColumnKind.NUMERIC)

    def test_numeric_kind_requires_numeric_values(self):
        frame = pd.DataFrame({'a': ['x', 'y']})
        with self.assertRaises(InvalidParameter):
            Dataset(frame, {'a': ColumnKind.NUMERIC})

    def test_schema_must_cover_columns(self):
        with self.assertRaises(InvalidParameter):
            Dataset(pd.DataFrame({'a': [1], 'b': [2]}), {'a': 'numeric'})

    def test_dataset_is_not_modified_through_accessors(self):
        frame = self.dataset.frame
        frame.loc[0, 'Duration'] = -1
        column = self.dataset.column('Duration')
        column.iloc[0] = -1
        self.assertNotEqual(self.dataset.column('Duration').iloc[0], -1)

        # Mutating the source frame after construction has no effect either
        self.frame.loc[0, 'Duration'] = -1
        self.assertNotEqual(self.dataset.column('Duration').iloc[0], -1)

    def test_with_derived_column_returns_new_dataset(self):
        derived = self.dataset.with_derived_column(
            'LongLoan',
            lambda df: np.where(df['Duration'] > 24, 'yes', 'no')
        )
        self.assertIn('LongLoan', derived.columns)
        self.assertNotIn('LongLoan', self.dataset.columns)
        self.assertTrue(derived.is_categorical('LongLoan'))
        self.assertEqual(len(derived), len(self.dataset))

        with self.assertRaises(InvalidParameter):
            self.dataset.with_derived_column('Class', ['x'] * len(self.dataset))
        with self.assertRaises(InvalidParameter):
            self.dataset.with_derived_column('Short', ['x'] * 3)

    def test_subset_and_class_proportions(self):
        subset = self.dataset.subset([0, 5, 10])
        self.assertEqual(len(subset), 3)
        self.assertEqual(subset.column('Age').tolist(), self.frame['Age'].iloc[[0, 5, 10]].tolist())

        proportions = self.dataset.class_proportions('Class')
        self.assertAlmostEqual(proportions['bad'], 0.3)
        self.assertAlmostEqual(proportions['good'], 0.7)

        with self.assertRaises(InvalidParameter):
            self.dataset.subset([len(self.dataset)])

    def test_unknown_column(self):
        with self.assertRaises(InvalidParameter):
            self.dataset.column('Missing')

    def test_records(self):
        records = list(self.dataset.subset([0, 1]).records())
        self.assertEqual(len(records), 2)
        self.assertEqual(set(records[0].keys()), set(self.dataset.columns))


class TestDelimitedTextLoader(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def _write(self, name, text):
        path = self.dir / name
        path.write_text(text)
        return str(path)

    def test_load_csv(self):
        path = self._write('credit.csv', CSV_TEXT)
        dataset = DelimitedTextLoader(max_categories=3).load(path)

        self.assertEqual(len(dataset), 4)
        self.assertEqual(dataset.columns, ['Duration', 'Amount', 'Housing', 'Notes', 'Class'])
        self.assertEqual(dataset.kind('Duration'), ColumnKind.NUMERIC)
        self.assertEqual(dataset.kind('Housing'), ColumnKind.CATEGORICAL)
        self.assertEqual(dataset.kind('Notes'), ColumnKind.TEXT)
        self.assertEqual(dataset.metadata['source'], path)

    def test_categorical_and_text_overrides(self):
        path = self._write('credit.csv', CSV_TEXT)
        dataset = DelimitedTextLoader(categorical_columns=['Duration'], text_columns=['Housing']).load(path)
        self.assertTrue(dataset.is_categorical('Duration'))
        self.assertEqual(dataset.column('Duration').iloc[0], '12')
        self.assertEqual(dataset.kind('Housing'), ColumnKind.TEXT)

    def test_tsv_format(self):
        path = self._write('credit.tsv', CSV_TEXT.replace(',', '\t'))
        dataset = load_dataset(path, format='tsv')
        self.assertEqual(len(dataset), 4)

    def test_missing_file(self):
        with self.assertRaises(LoadError):
            load_dataset(str(self.dir / 'nope.csv'))

    def test_empty_file(self):
        path = self._write('empty.csv', '')
        with self.assertRaises(LoadError):
            load_dataset(path)

    def test_malformed_rows(self):
        too_many = self._write('too_many.csv', "a,b\n1,2\n3,4,5\n")
        too_few = self._write('too_few.csv', "a,b\n1,2\n3\n")
        with self.assertRaises(LoadError):
            load_dataset(too_many)
        with self.assertRaises(LoadError):
            load_dataset(too_few)

    def test_duplicate_header(self):
        path = self._write('dup.csv', "a,a\n1,2\n")
        with self.assertRaises(LoadError):
            load_dataset(path)

    def test_unknown_override_column(self):
        path = self._write('credit.csv', CSV_TEXT)
        with self.assertRaises(LoadError):
            load_dataset(path, categorical_columns=['Nope'])

    def test_unknown_format(self):
        path = self._write('credit.csv', CSV_TEXT)
        with self.assertRaises(LoadError):
            load_dataset(path, format='parquet')

    def test_text_columns_trigger_warning(self):
        path = self._write('credit.csv', CSV_TEXT)
        with self.assertWarns(UserWarning):
            load_dataset(path, max_categories=3)

    @patch('data.loaders.urlopen')
    def test_load_from_url(self, mock_urlopen):
        response = MagicMock()
        response.read.return_value = CSV_TEXT.encode('utf-8')
        mock_urlopen.return_value.__enter__.return_value = response

        dataset = load_dataset('https://example.org/credit.csv', text_columns=['Notes'])
        self.assertEqual(len(dataset), 4)
        self.assertEqual(dataset.name, 'credit.csv')
        mock_urlopen.assert_called_once()

    @patch('data.loaders.urlopen', side_effect=URLError('unreachable'))
    def test_unreachable_url(self, mock_urlopen):
        with self.assertRaises(LoadError):
            load_dataset('https://example.org/credit.csv')

    def test_load_error_is_an_io_error(self):
        with self.assertRaises(IOError):
            load_dataset(str(self.dir / 'nope.csv'))


if __name__ == '__main__':
    unittest.main()
