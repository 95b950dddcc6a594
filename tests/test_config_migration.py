import unittest

from config import (
    Config,
    CURRENT_CONFIG_VERSION,
    DecayMode,
    apply_dict_to_dataclass,
    migrate_config,
)


class TestConfigMigration(unittest.TestCase):
    def test_missing_version_sets_defaults_and_bumps(self):
        cfg = Config()
        data = {
            # version intentionally omitted to simulate legacy file
            "organ": {},
            "vu": {},
        }

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        self.assertEqual(cfg.version, CURRENT_CONFIG_VERSION)
        self.assertEqual(cfg.organ.channels, 32)
        self.assertAlmostEqual(cfg.organ.spill_r, 0.05)
        self.assertEqual(cfg.vu.avg_weighting, "geometric")

    def test_legacy_spill_percentage_becomes_fraction(self):
        cfg = Config()
        data = {"organ": {"spill_r": 30}}

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        self.assertAlmostEqual(cfg.organ.spill_r, 0.3)

    def test_none_values_are_sanitized(self):
        cfg = Config()
        data = {
            "version": 0,
            "organ": {"max_freq": None, "scale_min": None},
            "organ2d": {"stages": None},
            "audio": {"device_index": None},
        }

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        self.assertEqual(cfg.version, CURRENT_CONFIG_VERSION)
        self.assertEqual(cfg.organ.max_freq, 2500.0)
        self.assertFalse(cfg.organ.scale_min)
        self.assertEqual(cfg.organ2d.stages, 6)
        self.assertIsNone(cfg.audio.device_index)

    def test_out_of_range_values_are_clamped(self):
        cfg = Config()
        data = {
            "version": 1,
            "organ": {"channels": 0, "decay_r": 1200, "spill_low_f": -2},
            "vu": {"avg_window": 500, "br_range": "0.25"},
        }

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        self.assertEqual(cfg.organ.channels, 1)
        self.assertEqual(cfg.organ.decay_r, 1000.0)
        self.assertEqual(cfg.organ.spill_low_f, 0.0)
        self.assertEqual(cfg.vu.avg_window, 50)
        self.assertAlmostEqual(cfg.vu.br_range, 0.25)

    def test_unparseable_value_falls_back_to_default(self):
        cfg = Config()
        data = {"version": 1, "organ": {"span": "wide"}}

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        self.assertEqual(cfg.organ.span, 2.0)

    def test_decay_mode_coercion(self):
        cfg = Config()
        apply_dict_to_dataclass(cfg, {"organ": {"decay_mode": 2}})
        self.assertIs(cfg.organ.decay_mode, DecayMode.SUSTAIN)

        apply_dict_to_dataclass(cfg, {"organ": {"decay_mode": 7}})
        self.assertIs(cfg.organ.decay_mode, DecayMode.SUSTAIN)

    def test_invalid_weighting_reset(self):
        cfg = Config()
        data = {"version": 1, "vu": {"avg_weighting": "cubic"}}

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        self.assertEqual(cfg.vu.avg_weighting, "geometric")

    def test_preserves_custom_values(self):
        cfg = Config()
        data = {
            "version": 1,
            "organ": {"channels": 12, "span": 4.0, "scale_min": True},
            "vu": {"avg_weighting": "linear", "avg_window": 8},
            "transform": {"enabled": True, "buffer_size": 3},
            "log_level": "DEBUG",
        }

        apply_dict_to_dataclass(cfg, data)
        migrate_config(cfg, data.get("version"))

        self.assertEqual(cfg.organ.channels, 12)
        self.assertEqual(cfg.organ.span, 4.0)
        self.assertTrue(cfg.organ.scale_min)
        self.assertEqual(cfg.vu.avg_weighting, "linear")
        self.assertEqual(cfg.vu.avg_window, 8)
        self.assertTrue(cfg.transform.enabled)
        self.assertEqual(cfg.transform.buffer_size, 3)
        self.assertEqual(cfg.log_level, "DEBUG")

    def test_non_dict_section_is_ignored(self):
        cfg = Config()
        apply_dict_to_dataclass(cfg, {"organ": 5, "unknown": {"x": 1}})
        migrate_config(cfg, 1)
        self.assertEqual(cfg.organ.channels, 32)
        self.assertFalse(hasattr(cfg, "unknown"))


if __name__ == "__main__":
    unittest.main()
