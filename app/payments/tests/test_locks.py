"""
Tests for DistributedLock against a mocked Redis connection.
"""

import pytest

from payments.exceptions import LockAcquisitionError
from payments.locks import DistributedLock


class TestDistributedLock:
    def test_acquire_sets_key_with_nx_and_ttl(self, mock_redis):
        lock = DistributedLock("escrow:test", ttl=60)

        assert lock.acquire() is True

        args, kwargs = mock_redis.set.call_args
        assert args[0] == "lock:escrow:test"
        assert kwargs == {"nx": True, "ex": 60}
        assert lock.is_held

    def test_non_blocking_raises_when_held(self, mock_redis):
        mock_redis.set.return_value = False
        lock = DistributedLock("escrow:test", blocking=False)

        with pytest.raises(LockAcquisitionError) as exc_info:
            lock.acquire()

        assert exc_info.value.details == {"key": "lock:escrow:test"}
        assert not lock.is_held
        assert mock_redis.set.call_count == 1

    def test_blocking_retries_until_available(self, mock_redis, mocker):
        mocker.patch("payments.locks.time.sleep")
        mock_redis.set.side_effect = [False, False, True]

        assert DistributedLock("escrow:test", timeout=5).acquire() is True
        assert mock_redis.set.call_count == 3

    def test_blocking_times_out(self, mock_redis, mocker):
        mocker.patch("payments.locks.time.sleep")
        mocker.patch("payments.locks.time.monotonic", side_effect=[0.0, 0.0, 0.5, 1.5])
        mock_redis.set.return_value = False

        with pytest.raises(LockAcquisitionError) as exc_info:
            DistributedLock("escrow:test", timeout=1.0).acquire()

        assert exc_info.value.details["timeout"] == 1.0
        assert exc_info.value.http_status == 409

    def test_release_uses_token_script(self, mock_redis):
        lock = DistributedLock("escrow:test")
        lock.acquire()
        token = mock_redis.set.call_args.args[1]

        assert lock.release() is True

        mock_redis.eval.assert_called_once_with(DistributedLock.RELEASE_SCRIPT, 1, "lock:escrow:test", token)
        assert not lock.is_held

    def test_release_without_acquire_is_noop(self, mock_redis):
        assert DistributedLock("escrow:test").release() is False
        mock_redis.eval.assert_not_called()

    def test_release_of_expired_lock_returns_false(self, mock_redis):
        mock_redis.eval.return_value = 0
        lock = DistributedLock("escrow:test")
        lock.acquire()

        assert lock.release() is False

    def test_extend_defaults_to_original_ttl(self, mock_redis):
        lock = DistributedLock("escrow:test", ttl=45)
        lock.acquire()

        assert lock.extend() is True

        assert mock_redis.eval.call_args.args[0] == DistributedLock.EXTEND_SCRIPT
        assert mock_redis.eval.call_args.args[-1] == 45

    def test_extend_without_lock(self, mock_redis):
        assert DistributedLock("escrow:test").extend(ttl=10) is False

    def test_context_manager_releases_on_error(self, mock_redis):
        with pytest.raises(ValueError):
            with DistributedLock("escrow:test") as lock:
                assert lock.is_held
                raise ValueError("boom")

        mock_redis.eval.assert_called_once()
        assert not lock.is_held
