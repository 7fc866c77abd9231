import numpy as np
import pandas as pd

from data.dataset import Dataset


def make_credit_frame(n_samples=1000, bad_fraction=0.3, seed=0):
    """
    Synthetic credit records with an exact good/bad ratio.

    Bad credits tend to have longer durations, larger amounts and to rent.
    """
    rng = np.random.RandomState(seed)
    n_bad = int(round(n_samples * bad_fraction))
    labels = np.array(['bad'] * n_bad + ['good'] * (n_samples - n_bad), dtype=object)
    rng.shuffle(labels)
    is_bad = labels == 'bad'

    duration = np.where(is_bad, rng.normal(32, 8, n_samples), rng.normal(16, 8, n_samples)).round().clip(4, 72)
    amount = np.where(is_bad, rng.normal(5000, 1500, n_samples), rng.normal(2500, 1500, n_samples)).round().clip(250)
    age = rng.randint(19, 75, n_samples)
    housing = np.where(
        is_bad,
        rng.choice(['rent', 'own', 'free'], n_samples, p=[0.6, 0.3, 0.1]),
        rng.choice(['rent', 'own', 'free'], n_samples, p=[0.15, 0.75, 0.1])
    )
    purpose = rng.choice(['car', 'furniture', 'education', 'business'], n_samples)

    return pd.DataFrame({
        'Duration': duration.astype(int),
        'Amount': amount,
        'Age': age,
        'Housing': housing,
        'Purpose': purpose,
        'Class': labels,
    })


def make_credit_dataset(n_samples=1000, bad_fraction=0.3, seed=0):
    return Dataset.from_frame(make_credit_frame(n_samples, bad_fraction, seed), name='credit')


def make_separable_dataset(n_per_class=60, seed=0):
    """Two numeric features, three well separated classes."""
    rng = np.random.RandomState(seed)
    centers = {'a': (0.0, 0.0), 'b': (6.0, 0.0), 'c': (0.0, 6.0)}
    rows = []
    for label, (cx, cy) in centers.items():
        for x, y in zip(rng.normal(cx, 0.7, n_per_class), rng.normal(cy, 0.7, n_per_class)):
            rows.append({'x': x, 'y': y, 'label': label})
    frame = pd.DataFrame(rows).sample(frac=1.0, random_state=seed).reset_index(drop=True)
    return Dataset.from_frame(frame, name='blobs')
