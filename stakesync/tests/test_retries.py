import logging
import unittest
from unittest.mock import Mock, call, patch

from stakesync.core.errors import ChainDataSourceError
from stakesync.utils.retries import with_retries


@patch("stakesync.utils.retries.time.sleep")
class TestWithRetries(unittest.TestCase):
    """Test cases for the with_retries function."""

    def test_first_attempt_succeeds(self, mock_sleep):
        logger = Mock(spec=logging.Logger)
        operation = Mock(return_value=110)

        assert with_retries(operation, logger) == 110
        assert operation.call_count == 1
        logger.info.assert_called_once_with("Attempt: %s", 1)
        mock_sleep.assert_not_called()

    def test_succeeds_after_failures(self, mock_sleep):
        logger = Mock(spec=logging.Logger)
        operation = Mock(
            side_effect=[ChainDataSourceError("down"), ChainDataSourceError("down"), True]
        )

        assert with_retries(operation, logger, max_attempts=5, delay=1) is True
        assert operation.call_count == 3
        assert logger.error.call_count == 2

    def test_exponential_backoff(self, mock_sleep):
        logger = Mock(spec=logging.Logger)
        operation = Mock(side_effect=[Exception("e")] * 3 + ["ok"])

        with_retries(operation, logger, max_attempts=5, delay=2)

        assert mock_sleep.call_args_list == [call(2), call(4), call(8)]

    def test_final_failure_reraised(self, mock_sleep):
        logger = Mock(spec=logging.Logger)
        error = ChainDataSourceError("still down")
        operation = Mock(side_effect=error)

        with self.assertRaises(ChainDataSourceError) as ctx:
            with_retries(operation, logger, max_attempts=3, delay=0)

        assert ctx.exception is error
        assert operation.call_count == 3
        # No sleep after the last attempt.
        assert mock_sleep.call_count == 2

    def test_unlisted_errors_not_retried(self, mock_sleep):
        logger = Mock(spec=logging.Logger)
        operation = Mock(side_effect=KeyError("config"))

        with self.assertRaises(KeyError):
            with_retries(
                operation, logger, max_attempts=5, retry_on=(ChainDataSourceError,)
            )

        assert operation.call_count == 1
        mock_sleep.assert_not_called()

    def test_returns_none(self, mock_sleep):
        logger = Mock(spec=logging.Logger)
        operation = Mock(return_value=None)

        assert with_retries(operation, logger, max_attempts=3, delay=0) is None

    def test_non_positive_attempts_rejected(self, mock_sleep):
        logger = Mock(spec=logging.Logger)
        operation = Mock()

        with self.assertRaises(ValueError):
            with_retries(operation, logger, max_attempts=0)
        operation.assert_not_called()
