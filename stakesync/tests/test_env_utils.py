import logging
import os
import unittest
from unittest.mock import patch

from stakesync.utils.env_utils import (
    check_for_missing_env_vars,
    get_bool_env_var,
    get_float_env_var,
    get_int_env_var,
)
from stakesync.utils.log import get_default_logger, set_log_level


class TestEnvUtils(unittest.TestCase):
    def test_missing_and_blank_reported(self):
        with self.assertRaises(EnvironmentError) as ctx:
            check_for_missing_env_vars({"A": "x", "B": None, "C": "  "})
        self.assertIn("B, C", str(ctx.exception))

    def test_all_present(self):
        check_for_missing_env_vars({"A": "x"})

    @patch.dict(os.environ, {"FLAG_ON": "Yes", "FLAG_OFF": "0", "FLAG_BLANK": ""})
    def test_bool(self):
        self.assertTrue(get_bool_env_var("FLAG_ON"))
        self.assertFalse(get_bool_env_var("FLAG_OFF", default=True))
        self.assertTrue(get_bool_env_var("FLAG_BLANK", default=True))
        self.assertFalse(get_bool_env_var("FLAG_UNSET_FOR_TEST"))

    @patch.dict(os.environ, {"SPAN": "500", "TIMEOUT": "2.5", "BAD": "many"})
    def test_numbers(self):
        self.assertEqual(get_int_env_var("SPAN", 2000), 500)
        self.assertEqual(get_int_env_var("SPAN_UNSET_FOR_TEST", 2000), 2000)
        self.assertEqual(get_float_env_var("TIMEOUT", 20), 2.5)
        with self.assertRaises(EnvironmentError):
            get_int_env_var("BAD", 1)
        with self.assertRaises(EnvironmentError):
            get_float_env_var("BAD", 1.0)


class TestLog(unittest.TestCase):
    def test_set_log_level(self):
        log = get_default_logger("stakesync.tests.level_probe")
        other = logging.getLogger("stakesyncother.probe")
        other.setLevel(logging.WARNING)
        try:
            set_log_level(logging.DEBUG)
            self.assertEqual(log.level, logging.DEBUG)
            self.assertEqual(other.level, logging.WARNING)
        finally:
            set_log_level(logging.INFO)
