"""Unit tests for seeded shuffling, splitting and subsampling."""

import pytest

from road_risk.preprocessing.splitting import (
    MODULUS,
    MULTIPLIER,
    ParkMillerRandom,
    Split,
    sample_indices,
    seeded_shuffle,
    split_indices,
)


class TestParkMillerRandom:
    """Tests for the minimal standard generator."""

    def test_first_draws(self):
        """Test the generator against hand-computed states."""
        rnd = ParkMillerRandom(1)

        assert rnd.random() == MULTIPLIER / MODULUS
        assert rnd.random() == (MULTIPLIER * MULTIPLIER % MODULUS) / MODULUS

    def test_known_sequence_value(self):
        """Test the classic check value: state 1043618065 after 10000 draws from seed 1."""
        rnd = ParkMillerRandom(1)
        for _ in range(10000):
            rnd.random()

        assert rnd.state == 1043618065

    def test_draws_in_unit_interval(self):
        """Test that draws lie in [0, 1)."""
        rnd = ParkMillerRandom(2025)

        assert all(0.0 <= rnd.random() < 1.0 for _ in range(1000))

    def test_negative_seed_raises(self):
        """Test that a negative seed is rejected."""
        with pytest.raises(ValueError, match="non-negative"):
            ParkMillerRandom(-1)


class TestSeededShuffle:
    """Tests for seeded_shuffle function."""

    def test_is_permutation(self):
        """Test that shuffling keeps every element exactly once."""
        items = list(range(100))

        result = seeded_shuffle(items, 42)

        assert result is items
        assert sorted(result) == list(range(100))

    def test_two_items_seed_one(self):
        """Test the first draw moves index 0 to the end for seed 1."""
        assert seeded_shuffle([0, 1], 1) == [1, 0]

    def test_same_seed_same_order(self):
        """Test that shuffling is reproducible."""
        assert seeded_shuffle(list(range(50)), 7) == seeded_shuffle(list(range(50)), 7)

    def test_different_seed_different_order(self):
        """Test that different seeds give different orders."""
        assert seeded_shuffle(list(range(50)), 7) != seeded_shuffle(list(range(50)), 8)


class TestSplitIndices:
    """Tests for split_indices function."""

    def test_two_rows_seed_one(self):
        """Test the floor behaviour and exact assignment for N=2, seed=1."""
        split = split_indices(2, 1)

        assert split == Split(train=(1,), val=(), test=(0,))

    @pytest.mark.parametrize("n", [0, 1, 7, 10, 101, 1000])
    def test_partition_sizes(self, n):
        """Test floor(0.7N) / floor(0.15N) / remainder."""
        sizes = split_indices(n, 2025).sizes()

        assert sizes["train"] == int(0.7 * n)
        assert sizes["val"] == int(0.15 * n)
        assert sizes["train"] + sizes["val"] + sizes["test"] == n

    def test_covers_range_exactly_once(self):
        """Test that partitions are disjoint and cover every row."""
        split = split_indices(500, 2025)

        combined = split.train + split.val + split.test
        assert sorted(combined) == list(range(500))

    def test_deterministic(self):
        """Test that the same N and seed give identical splits."""
        assert split_indices(300, 11) == split_indices(300, 11)

    def test_custom_fractions(self):
        """Test non-default fractions."""
        sizes = split_indices(100, 3, train_fraction=0.5, val_fraction=0.25).sizes()

        assert sizes == {"train": 50, "val": 25, "test": 25}

    def test_partition_lookup(self):
        """Test partition access by name."""
        split = split_indices(10, 1)

        assert split.partition("train") == split.train
        with pytest.raises(ValueError, match="Unknown partition"):
            split.partition("holdout")


class TestSampleIndices:
    """Tests for sample_indices function."""

    def test_sample_size(self):
        """Test that at most n positions are returned."""
        assert len(sample_indices(100, 10)) == 10
        assert sorted(sample_indices(5, 10)) == [0, 1, 2, 3, 4]

    def test_sample_is_prefix_of_shuffle(self):
        """Test that the sample is the head of the seeded shuffle."""
        assert sample_indices(100, 10, seed=2024) == seeded_shuffle(list(range(100)), 2024)[:10]

    def test_sample_is_unique(self):
        """Test that sampled positions are distinct."""
        chosen = sample_indices(1000, 200)

        assert len(set(chosen)) == 200
