import numpy as np
import pandas as pd
import pytest

from cartocover.forms.schema import FeatureSchema


@pytest.fixture
def features():
    # Small feature table with nulls in every column
    return pd.DataFrame({
        "kind":    ["road", "rail", "road", None, "river", "rail", "road"],
        "lanes":   [2.0, np.nan, 4.0, 1.0, np.nan, 3.0, 6.0],
        "capital": [True, False, None, True, False, False, True],
        "name":    ["A1", "B2", None, "C3", "Seine", "D4", "E5"],
    })


@pytest.fixture
def schema(features):
    return FeatureSchema.from_frame(features, name="roads")


@pytest.fixture
def scales():
    # Interior points and every boundary used by the coverage tests
    return [0.0, 10.0, 50.0, 99.5, 100.0, 150.0, 200.0, 499.0, 500.0,
            750.0, 1000.0, 1250.0, 1500.0, 5000.0, 1e9]
