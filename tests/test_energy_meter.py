import unittest

import numpy as np

from config import VuMeterConfig
from energy_meter import EnergyMeter, fill_lights
from signal_utils import EnergyWindow


class TestFillLights(unittest.TestCase):
    def test_half_level_fills_half_the_strip(self):
        lights = fill_lights(32, 0.5)
        self.assertEqual(lights.count(1.0), 16)
        self.assertEqual(lights.count(0.0), 16)
        self.assertEqual(lights[:16], [1.0] * 16)

    def test_integral_fill_has_no_remainder(self):
        lights = fill_lights(32, 0.5625)
        self.assertEqual(lights.count(1.0), 18)
        self.assertEqual(lights[18:], [0.0] * 14)

    def test_fractional_remainder_on_last_lit_light(self):
        lights = fill_lights(4, 0.3)
        np.testing.assert_allclose(lights, [1.0, 0.2, 0.0, 0.0], atol=1e-12)

    def test_brightness_range_dims_quiet_levels(self):
        lights = fill_lights(4, 0.5, br_range=0.5)
        np.testing.assert_allclose(lights, [0.75, 0.75, 0.0, 0.0])

    def test_full_brightness_range_follows_level(self):
        lights = fill_lights(4, 0.5, br_range=1.0)
        np.testing.assert_allclose(lights, [0.5, 0.5, 0.0, 0.0])

    def test_zero_and_full_levels(self):
        self.assertEqual(fill_lights(5, 0.0), [0.0] * 5)
        self.assertEqual(fill_lights(5, 1.0), [1.0] * 5)


class TestEnergyWindow(unittest.TestCase):
    def test_first_sample_fills_window(self):
        window = EnergyWindow(3)
        window.add(2.0)
        self.assertEqual(len(window), 3)
        self.assertAlmostEqual(window.average("linear"), 2.0)

    def test_linear_and_geometric_weighting(self):
        window = EnergyWindow(3)
        window.add(1.0)
        window.add(4.0)
        np.testing.assert_allclose(window.newest_first(), [4.0, 1.0, 1.0])
        self.assertAlmostEqual(window.average("linear"), 15.0 / 6.0)
        self.assertAlmostEqual(window.average("geometric", 0.5), 4.75 / 1.75)

    def test_resize_keeps_newest(self):
        window = EnergyWindow(3)
        window.add(1.0)
        window.add(4.0)
        window.add(5.0)
        window.resize(2)
        np.testing.assert_allclose(window.newest_first(), [5.0, 4.0])

        window.resize(4)
        window.add(6.0)
        np.testing.assert_allclose(window.newest_first(), [6.0, 6.0, 5.0, 4.0])

    def test_unknown_weighting(self):
        window = EnergyWindow(2)
        window.add(1.0)
        with self.assertRaises(ValueError):
            window.average("cubic")


class TestEnergyMeter(unittest.TestCase):
    def test_instantaneous_energy_uses_exponent(self):
        meter = EnergyMeter(8, VuMeterConfig(bin_exponent=2, scale_min=False))
        reading = meter.process(np.full(16, 0.5), now=0)
        self.assertAlmostEqual(reading.instant_energy, 0.25)
        self.assertAlmostEqual(reading.avg_energy, 0.25)
        self.assertAlmostEqual(reading.level, 1.0)
        self.assertEqual(reading.lights, [1.0] * 8)

    def test_scale_min_first_frame_is_dark(self):
        meter = EnergyMeter(8, VuMeterConfig())
        reading = meter.process(np.full(16, 0.5), now=0)
        self.assertEqual(reading.level, 0.0)
        self.assertEqual(reading.lights, [0.0] * 8)

    def test_level_tracks_range(self):
        meter = EnergyMeter(10, VuMeterConfig(bin_exponent=1, scale_min=True, br_range=0.0))
        meter.process(np.full(4, 0.2), now=0)
        meter.process(np.full(4, 0.6), now=10)
        reading = meter.process(np.full(4, 0.4), now=20)
        self.assertAlmostEqual(reading.level, 0.5)
        self.assertAlmostEqual(reading.aux_max, 0.6)
        self.assertAlmostEqual(reading.aux_min, 0.2)
        self.assertEqual(reading.lights[:5], [1.0] * 5)

    def test_instantaneous_mode_skips_window(self):
        cfg = VuMeterConfig(bin_exponent=1, avg_window=4, use_average=False, scale_min=False)
        meter = EnergyMeter(4, cfg)
        meter.process(np.full(4, 0.8), now=0)
        reading = meter.process(np.full(4, 0.2), now=10)
        self.assertAlmostEqual(reading.avg_energy, 0.2)
        self.assertAlmostEqual(reading.level, 0.25)

    def test_linear_average_smooths(self):
        cfg = VuMeterConfig(bin_exponent=1, avg_window=2, avg_weighting="linear", scale_min=False)
        meter = EnergyMeter(4, cfg)
        meter.process(np.full(4, 0.8), now=0)
        reading = meter.process(np.full(4, 0.2), now=10)
        # newest weight 2, previous weight 1
        self.assertAlmostEqual(reading.avg_energy, 0.4)

    def test_light_count_change_resets_range(self):
        meter = EnergyMeter(8, VuMeterConfig())
        meter.process(np.full(4, 0.5), now=0)
        meter.set_light_count(16)
        reading = meter.process(np.full(4, 0.5), now=10)
        self.assertEqual(len(reading.lights), 16)
        self.assertAlmostEqual(reading.aux_max, 0.25)

    def test_reconfigure_resizes_window(self):
        meter = EnergyMeter(8, VuMeterConfig(avg_window=4))
        meter.process(np.full(4, 0.5), now=0)
        meter.reconfigure(VuMeterConfig(avg_window=2, size=12))
        self.assertEqual(meter.window.capacity, 2)
        self.assertEqual(meter.light_count, 12)

    def test_reconfigure_rejects_unknown_weighting(self):
        meter = EnergyMeter(8, VuMeterConfig())
        with self.assertRaises(ValueError):
            meter.reconfigure(VuMeterConfig(avg_weighting="cubic"))


if __name__ == "__main__":
    unittest.main()
