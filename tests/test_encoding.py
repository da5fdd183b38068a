"""Unit tests for the column layout, feature encoder and scaler."""

import numpy as np
import pandas as pd
import pytest

from road_risk.exceptions import EncodingError
from road_risk.preprocessing.encoding import (
    ColumnLayout,
    FeatureEncoder,
    Scaler,
    ScalerKind,
)
from road_risk.preprocessing.parsing import parse_tabular_text
from road_risk.preprocessing.schema import FeatureKind, SchemaInferencer

SOURCE = (
    "road_type,curvature,holiday,accident_risk\n"
    "urban,0.2,True,0.1\n"
    "rural,0.8,False,0.5\n"
    "highway,,True,0.9\n"
    "urban,0.4,False,0.3\n"
)


@pytest.fixture
def rows():
    """Fixture providing parsed encoder test rows."""
    return parse_tabular_text(SOURCE)


@pytest.fixture
def layout(rows, mock_logger):
    """Fixture providing the column layout of the encoder test rows."""
    return ColumnLayout.from_schema(SchemaInferencer(mock_logger).infer(rows))


class TestColumnLayout:
    """Tests for ColumnLayout class."""

    def test_blocks_follow_schema_order(self, layout):
        """Test block offsets and widths."""
        blocks = {b.feature: b for b in layout.blocks}

        assert (blocks["road_type"].start, blocks["road_type"].width) == (0, 3)
        assert (blocks["curvature"].start, blocks["curvature"].width) == (3, 1)
        assert (blocks["holiday"].start, blocks["holiday"].width) == (4, 1)
        assert blocks["holiday"].kind is FeatureKind.BOOLEAN
        assert layout.width == 5

    def test_feature_names(self, layout):
        """Test the flattened encoded column names."""
        assert layout.feature_names == [
            "road_type__urban",
            "road_type__rural",
            "road_type__highway",
            "curvature",
            "holiday",
        ]

    def test_numeric_columns(self, layout):
        """Test that numeric and boolean positions are scaled, one-hot ones are not."""
        assert layout.numeric_columns == [3, 4]

    def test_encoders(self, layout):
        """Test the category order table."""
        assert layout.encoders == {"road_type": ["urban", "rural", "highway"]}

    def test_width_matches_feature_count(self, road_csv_text, mock_logger):
        """Test the width invariant on the realistic source."""
        schema = SchemaInferencer(mock_logger).infer(parse_tabular_text(road_csv_text))
        layout = ColumnLayout.from_schema(schema)

        expected = sum(
            len(f.values) if f.kind is FeatureKind.CATEGORICAL else 1 for f in schema
        )
        assert layout.width == expected == len(layout.feature_names)


class TestFeatureEncoder:
    """Tests for FeatureEncoder class."""

    def test_encode(self, layout, rows, mock_logger):
        """Test encoding of every feature kind."""
        X = FeatureEncoder(layout, mock_logger).encode(rows)

        assert X.shape == (4, 5)
        np.testing.assert_array_equal(X[0], [1.0, 0.0, 0.0, 0.2, 1.0])
        np.testing.assert_array_equal(X[1], [0.0, 1.0, 0.0, 0.8, 0.0])
        assert np.isnan(X[2, 3])

    def test_one_hot_blocks_sum_to_at_most_one(self, layout, mock_logger):
        """Test that unseen or differently cased categories encode as all zeros."""
        rows = pd.DataFrame(
            {"road_type": ["urban", "Urban", "mountain"], "curvature": ["1", "2", "3"], "holiday": ["True"] * 3},
            dtype=object,
        )

        X = FeatureEncoder(layout, mock_logger).encode(rows)

        np.testing.assert_array_equal(X[:, :3].sum(axis=1), [1.0, 0.0, 0.0])

    def test_one_hot_encoders_follow_layout_categories(self, layout, mock_logger):
        """Test that each categorical block gets a one-hot encoder in layout order."""
        encoder = FeatureEncoder(layout, mock_logger)

        assert list(encoder.one_hot) == ["road_type"]
        assert list(encoder.one_hot["road_type"].categories_[0]) == ["urban", "rural", "highway"]

    def test_encode_empty_rows(self, layout, rows, mock_logger):
        """Test that zero rows encode into an empty matrix of the layout width."""
        X = FeatureEncoder(layout, mock_logger).encode(rows.iloc[:0])

        assert X.shape == (0, 5)

    def test_boolean_requires_exact_true(self, layout, mock_logger):
        """Test that only the exact string "True" encodes as 1."""
        rows = pd.DataFrame(
            {"road_type": ["urban"] * 3, "curvature": ["1"] * 3, "holiday": ["True", "true", "1"]},
            dtype=object,
        )

        X = FeatureEncoder(layout, mock_logger).encode(rows)

        np.testing.assert_array_equal(X[:, 4], [1.0, 0.0, 0.0])

    def test_missing_column_raises(self, layout, mock_logger):
        """Test that rows lacking a feature column raise EncodingError."""
        rows = pd.DataFrame({"road_type": ["urban"]}, dtype=object)

        with pytest.raises(EncodingError, match="missing feature columns"):
            FeatureEncoder(layout, mock_logger).encode(rows)

    def test_encode_target(self, layout, rows, mock_logger):
        """Test that the target is parsed into a column vector."""
        y = FeatureEncoder(layout, mock_logger).encode_target(rows, "accident_risk")

        assert y.shape == (4, 1)
        np.testing.assert_allclose(y.ravel(), [0.1, 0.5, 0.9, 0.3])

    def test_unparsable_target_raises_with_rows(self, layout, mock_logger):
        """Test that unparsable targets are reported instead of becoming NaN."""
        rows = pd.DataFrame({"accident_risk": ["0.1", "", "high", "0.4"]}, dtype=object)

        with pytest.raises(EncodingError) as exc_info:
            FeatureEncoder(layout, mock_logger).encode_target(rows, "accident_risk")

        assert exc_info.value.row_indices == [1, 2]

    def test_missing_target_raises(self, layout, rows, mock_logger):
        """Test that a missing target column raises EncodingError."""
        with pytest.raises(EncodingError, match="not found"):
            FeatureEncoder(layout, mock_logger).encode_target(rows, "risk")


class TestScaler:
    """Tests for Scaler class."""

    @pytest.fixture
    def X(self, layout, rows, mock_logger):
        """Fixture providing the encoded test matrix."""
        return FeatureEncoder(layout, mock_logger).encode(rows)

    def test_minmax_in_unit_interval(self, layout, X):
        """Test that min-max scaled fitted columns lie in [0, 1]."""
        Scaler("minmax").fit(X, layout).transform(X)

        np.testing.assert_allclose(X[[0, 1, 3], 3], [0.0, 1.0, 1.0 / 3.0])
        assert X[:, layout.numeric_columns].min() >= 0.0
        assert X[:, layout.numeric_columns].max() <= 1.0

    def test_non_finite_becomes_zero(self, layout, X):
        """Test that NaN cells are replaced by exactly 0 after scaling."""
        Scaler("standard").fit(X, layout).transform(X)

        assert X[2, 3] == 0.0
        assert np.isfinite(X).all()

    def test_standard_mean_zero_std_one(self, layout, mock_logger, road_csv_text):
        """Test standard scaling over the rows used for fitting."""
        rows = parse_tabular_text(road_csv_text)
        big_layout = ColumnLayout.from_schema(SchemaInferencer(mock_logger).infer(rows))
        X = FeatureEncoder(big_layout, mock_logger).encode(rows)

        Scaler(ScalerKind.STANDARD).fit(X, big_layout).transform(X)

        for c in big_layout.numeric_columns:
            assert X[:, c].mean() == pytest.approx(0.0, abs=1e-9)
            assert X[:, c].std(ddof=1) == pytest.approx(1.0)

    def test_one_hot_columns_untouched(self, layout, X):
        """Test that categorical columns are not scaled."""
        before = X[:, :3].copy()

        Scaler("standard").fit(X, layout).transform(X)

        np.testing.assert_array_equal(X[:, :3], before)

    def test_constant_column_uses_unit_denominator(self, layout, mock_logger):
        """Test that zero range or zero std divide by 1."""
        rows = pd.DataFrame(
            {"road_type": ["urban"] * 3, "curvature": ["2"] * 3, "holiday": ["True"] * 3},
            dtype=object,
        )
        X = FeatureEncoder(layout, mock_logger).encode(rows)

        Scaler("minmax").fit(X, layout).transform(X)

        np.testing.assert_array_equal(X[:, 3], [0.0, 0.0, 0.0])

    def test_fit_on_row_subset(self, layout, X):
        """Test that statistics can be fitted on a subset of rows."""
        scaler = Scaler("minmax").fit(X, layout, rows=[0, 3])

        assert scaler.stats[3].min == 0.2
        assert scaler.stats[3].max == 0.4

    def test_empty_fit_column(self, layout, mock_logger):
        """Test that a column without finite values gets zero statistics."""
        rows = pd.DataFrame(
            {"road_type": ["urban"], "curvature": [""], "holiday": ["True"]}, dtype=object
        )
        X = FeatureEncoder(layout, mock_logger).encode(rows)

        scaler = Scaler("standard").fit(X, layout)

        assert scaler.stats[3].std == 0.0
        assert scaler.transform(X)[0, 3] == 0.0

    def test_unknown_kind_raises(self):
        """Test that an unknown scaler kind is rejected."""
        with pytest.raises(ValueError):
            Scaler("robust")
