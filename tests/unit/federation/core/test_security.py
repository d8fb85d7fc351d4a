from unittest.mock import patch

from src.federation.core.security import (
    generate_session_id,
    generate_state,
    hash_password,
    verify_password,
)


class TestTokens:
    def test_state_is_url_safe_and_unique(self):
        first, second = generate_state(), generate_state()
        assert first != second
        assert len(first) == 43
        assert "=" not in first and "+" not in first and "/" not in first

    def test_session_ids_are_unique(self):
        assert generate_session_id() != generate_session_id()


class TestPasswords:
    def test_round_trip(self):
        hashed = hash_password("s3cret")
        assert hashed.startswith("$argon2id$")
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)

    def test_missing_hash_never_verifies(self):
        assert not verify_password("s3cret", None)
        assert not verify_password("s3cret", "")
        assert not verify_password("", hash_password("s3cret"))

    def test_missing_hash_costs_a_full_check(self):
        """Should run argon2 against a stand-in hash when no hash is stored."""
        with patch("src.federation.core.security._password_hasher.verify") as verify:
            verify.return_value = True
            assert verify_password("s3cret", None) is False
        verify.assert_called_once()
        assert verify.call_args.args[0].startswith("$argon2")

    def test_garbage_hash_is_rejected(self):
        assert not verify_password("s3cret", "not-an-argon2-hash")
