"""Unit tests for request signing helpers."""

import hashlib
import hmac

import pytest

from hull_client.core.errors import MissingConfig
from hull_client.core.security import current_user_id, sign


class TestSign:
    def test_hmac_sha1_of_data(self, config):
        expected = hmac.new(b"1234", b"hello", hashlib.sha1).hexdigest()

        assert sign(config, "hello") == expected

    def test_prefers_access_token(self, config):
        config["access_token"] = "token-key"
        expected = hmac.new(b"token-key", b"hello", hashlib.sha1).hexdigest()

        assert sign(config, "hello") == expected

    def test_rejects_non_string_data(self, config):
        with pytest.raises(TypeError):
            sign(config, {"user": "1"})

    def test_requires_credentials(self):
        with pytest.raises(MissingConfig):
            sign({"id": "abc"}, "hello")


class TestCurrentUserId:
    """Test signed user id verification."""

    def test_accepts_valid_signature(self, config):
        signature = sign(config, "1500000000-user-1")

        assert current_user_id(config, "user-1", f"1500000000.{signature}") is True

    def test_rejects_signature_for_other_user(self, config):
        signature = sign(config, "1500000000-user-1")

        assert current_user_id(config, "user-2", f"1500000000.{signature}") is False

    @pytest.mark.parametrize("user_id, user_sig", [(None, "1.abc"), ("user-1", None), ("", "")])
    def test_missing_inputs(self, config, user_id, user_sig):
        assert current_user_id(config, user_id, user_sig) is False
