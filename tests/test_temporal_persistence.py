import unittest

import numpy as np

from config import DecayMode
from errors import SizeMismatchError
from range_tracker import RangeTrackerSettings
from temporal_persistence import TemporalPersistence


class TestTemporalPersistence(unittest.TestCase):
    def test_rows_suppressed_until_warm(self):
        persistence = TemporalPersistence(stage_count=3, channel_count=4)
        frame = np.full(4, 0.5)

        self.assertIsNone(persistence.push(frame, now=0))
        self.assertIsNone(persistence.push(frame, now=10))
        rows = persistence.push(frame, now=20)

        self.assertIsNotNone(rows)
        self.assertEqual(len(rows), 3)
        for row in rows:
            self.assertEqual(len(row), 4)
        self.assertTrue(persistence.warmed_up)

    def test_stage_products_are_cumulative(self):
        persistence = TemporalPersistence(stage_count=3, channel_count=2)
        persistence.push([2.0, 1.0], now=0)
        persistence.push([3.0, 0.5], now=10)
        persistence.push([0.5, 4.0], now=20)

        products = persistence.stage_products()
        np.testing.assert_allclose(products[0], [0.5, 4.0])
        np.testing.assert_allclose(products[1], [1.5, 2.0])
        np.testing.assert_allclose(products[2], [3.0, 2.0])

    def test_reused_input_array_is_copied(self):
        persistence = TemporalPersistence(stage_count=2, channel_count=1)
        buf = np.array([2.0])
        persistence.push(buf, now=0)
        buf[:] = 3.0
        persistence.push(buf, now=10)

        products = persistence.stage_products()
        np.testing.assert_allclose(products[0], [3.0])
        np.testing.assert_allclose(products[1], [6.0])

    def test_history_is_bounded_by_stage_count(self):
        persistence = TemporalPersistence(stage_count=2, channel_count=1)
        for i in range(5):
            persistence.push([float(i + 1)], now=i)
        self.assertEqual(persistence.depth, 2)
        np.testing.assert_allclose(persistence.stage_products()[1], [20.0])

    def test_each_stage_has_own_tracker(self):
        persistence = TemporalPersistence(stage_count=2, channel_count=1)
        self.assertIsNot(persistence.tracker(0), persistence.tracker(1))
        persistence.push([0.5], now=0)
        self.assertTrue(persistence.tracker(0).is_seeded)
        self.assertFalse(persistence.tracker(1).is_seeded)

    def test_default_stage_settings(self):
        persistence = TemporalPersistence(stage_count=1, channel_count=4)
        settings = persistence.tracker(0).settings
        self.assertEqual(settings.decay_mode, DecayMode.SUSTAIN)
        self.assertAlmostEqual(settings.spill_r, 0.3)
        self.assertAlmostEqual(settings.sustain_t, 20.0)
        self.assertAlmostEqual(settings.decay_r, 960.0)
        self.assertFalse(settings.scale_min)

    def test_settings_factory_per_stage(self):
        def factory(stage):
            return RangeTrackerSettings(decay_r=900.0 + stage, scale_min=stage == 1)

        persistence = TemporalPersistence(stage_count=2, channel_count=1, settings_factory=factory)
        self.assertAlmostEqual(persistence.tracker(1).settings.decay_r, 901.0)
        self.assertTrue(persistence.tracker(1).settings.scale_min)
        self.assertFalse(persistence.tracker(0).settings.scale_min)

    def test_reset_clears_history_and_trackers(self):
        persistence = TemporalPersistence(stage_count=2, channel_count=2)
        persistence.push([0.1, 0.2], now=0)
        persistence.push([0.1, 0.2], now=1)

        persistence.reset(stage_count=4, channel_count=3)

        self.assertEqual(persistence.depth, 0)
        self.assertEqual(persistence.stage_count, 4)
        self.assertFalse(persistence.tracker(0).is_seeded)
        self.assertIsNone(persistence.push([0.1, 0.2, 0.3], now=2))

    def test_size_mismatch(self):
        persistence = TemporalPersistence(stage_count=2, channel_count=2)
        with self.assertRaises(SizeMismatchError):
            persistence.push([0.1, 0.2, 0.3])
        self.assertEqual(persistence.depth, 0)


if __name__ == "__main__":
    unittest.main()
