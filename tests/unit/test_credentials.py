"""
test_credentials.py - Unit tests for password hashing
"""

from contribution_ledger.credentials import ALGORITHM, hash_password, verify_password


class TestPasswordHashing:

    def test_hash_verifies(self):
        encoded = hash_password("admin1", iterations=1000)
        assert encoded.startswith(f"{ALGORITHM}$1000$")
        assert verify_password("admin1", encoded)

    def test_wrong_password(self):
        assert not verify_password("admin2", hash_password("admin1", iterations=1000))

    def test_plaintext_never_stored(self):
        assert "secret-word" not in hash_password("secret-word", iterations=1000)

    def test_salted(self):
        assert hash_password("same", iterations=1000) != hash_password("same", iterations=1000)

    def test_fixed_salt_is_deterministic(self):
        salt = bytes(16)
        assert hash_password("pw", salt, 1000) == hash_password("pw", salt, 1000)

    def test_malformed_hash_rejected(self):
        assert not verify_password("pw", "not-a-hash")
        assert not verify_password("pw", "md5$1$00$00")
        assert not verify_password("pw", None)
