"""
Tests for matrix preparation: standardization, PCA reduction, random control.
"""

import numpy as np
import pandas as pd
import pytest

from src.occupation_clusters import (
    DegenerateColumnError,
    InsufficientDimensionsError,
    SkillMatrix,
    StandardizedMatrix,
    branch_rng,
    randomize,
    reduce,
    standardize,
)


class TestSkillMatrix:
    def test_values_are_read_only(self, skill_matrix):
        with pytest.raises(ValueError):
            skill_matrix.values[0, 0] = 99.0

    def test_rejects_missing_cells(self):
        values = np.array([[1.0, np.nan], [2.0, 3.0]])
        with pytest.raises(ValueError, match="non-finite"):
            SkillMatrix(values, ["a", "b"], ["x", "y"])

    def test_rejects_duplicate_occupations(self):
        with pytest.raises(ValueError, match="Duplicate"):
            SkillMatrix(np.ones((2, 2)), ["a", "a"], ["x", "y"])

    def test_rejects_shape_mismatch(self):
        with pytest.raises(ValueError):
            SkillMatrix(np.ones((2, 2)), ["a", "b", "c"], ["x", "y"])

    def test_dataframe_roundtrip_keeps_ids(self, skill_matrix):
        df = skill_matrix.to_dataframe()
        assert df.index.name == "occupation"

        rebuilt = SkillMatrix.from_dataframe(df)
        assert rebuilt.occupations == skill_matrix.occupations
        assert rebuilt.skills == skill_matrix.skills
        np.testing.assert_array_equal(rebuilt.values, skill_matrix.values)


class TestStandardize:
    def test_zero_mean_unit_variance(self, skill_matrix):
        result = standardize(skill_matrix)

        assert isinstance(result, StandardizedMatrix)
        np.testing.assert_allclose(result.values.mean(axis=0), 0.0, atol=1e-10)
        np.testing.assert_allclose(result.values.std(axis=0), 1.0, atol=1e-10)

    def test_preserves_identifiers(self, skill_matrix):
        result = standardize(skill_matrix)
        assert result.occupations == skill_matrix.occupations
        assert result.skills == skill_matrix.skills

    def test_inverse_transform(self, skill_matrix):
        restored = standardize(skill_matrix).inverse_transform()
        np.testing.assert_allclose(restored.values, skill_matrix.values)

    def test_constant_column_raises(self):
        values = np.column_stack([np.arange(5.0), np.full(5, 3.0)])
        matrix = SkillMatrix(values, list("abcde"), ["varied", "constant"])

        with pytest.raises(DegenerateColumnError) as excinfo:
            standardize(matrix)
        assert excinfo.value.columns == ["constant"]

    def test_tiny_but_real_variance_is_kept(self):
        values = np.column_stack([np.arange(5.0), np.arange(5.0) * 1e-9])
        matrix = SkillMatrix(values, list("abcde"), ["scores", "fractions"])

        result = standardize(matrix)
        np.testing.assert_allclose(result.values[:, 1], result.values[:, 0])

    def test_constant_non_integer_column_raises(self):
        values = np.column_stack([np.arange(7.0), np.full(7, 0.1)])
        matrix = SkillMatrix(values, list("abcdefg"), ["varied", "tenths"])

        with pytest.raises(DegenerateColumnError):
            standardize(matrix)


class TestReduce:
    def test_shape_and_component_names(self, skill_matrix):
        result = reduce(standardize(skill_matrix), p=3)

        assert result.values.shape == (30, 3)
        assert result.skills == ["PC1", "PC2", "PC3"]
        assert result.occupations == skill_matrix.occupations
        assert list(result.loadings.columns) == ["PC1", "PC2", "PC3"]

    def test_variance_descending(self, skill_matrix):
        result = reduce(standardize(skill_matrix), p=4)
        ratios = result.explained_variance_ratio

        assert np.all(np.diff(ratios) <= 1e-12)
        assert result.cumulative_variance[-1] <= 1.0 + 1e-12

        table = result.variance_table()
        assert list(table["component"]) == ["PC1", "PC2", "PC3", "PC4"]

    def test_too_many_components(self, skill_matrix):
        with pytest.raises(InsufficientDimensionsError) as excinfo:
            reduce(standardize(skill_matrix), p=7)
        assert excinfo.value.requested == 7
        assert excinfo.value.available == 6

    def test_non_positive_components(self, skill_matrix):
        with pytest.raises(ValueError):
            reduce(skill_matrix, p=0)


class TestRandomize:
    def test_same_seed_same_control(self, skill_matrix):
        first = randomize(skill_matrix, branch_rng(1, "random_control"))
        second = randomize(skill_matrix, branch_rng(1, "random_control"))
        np.testing.assert_array_equal(first.values, second.values)

    def test_different_seed_different_control(self, skill_matrix):
        first = randomize(skill_matrix, branch_rng(1, "random_control"))
        second = randomize(skill_matrix, branch_rng(2, "random_control"))
        assert not np.allclose(first.values, second.values)

    def test_stays_within_column_ranges(self, skill_matrix):
        control = randomize(skill_matrix, branch_rng(1, "random_control"))
        raw = control.inverse_transform().values

        lows = skill_matrix.values.min(axis=0)
        highs = skill_matrix.values.max(axis=0)
        assert np.all(raw >= lows - 1e-9)
        assert np.all(raw <= highs + 1e-9)

    def test_control_is_standardized(self, skill_matrix):
        control = randomize(skill_matrix, branch_rng(1, "random_control"))
        assert control.occupations == skill_matrix.occupations
        np.testing.assert_allclose(control.values.mean(axis=0), 0.0, atol=1e-10)
