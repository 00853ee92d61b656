"""
Unit tests for password hashing utilities
"""

from app.utils.password_hashing import PasswordHasher


class TestPasswordHasher:
    """Test cases for PasswordHasher class"""

    def test_hash_password_basic(self):
        """Test basic password hashing functionality"""
        password = "test_password_123"
        hashed = PasswordHasher.hash_password(password)

        assert isinstance(hashed, str)
        assert hashed != password
        assert hashed.startswith("$2")

    def test_hashes_are_salted(self):
        """Same password produces different hashes"""
        assert PasswordHasher.hash_password("same") != PasswordHasher.hash_password("same")

    def test_verify_correct_password(self):
        hashed = PasswordHasher.hash_password("P@ssw0rd!#$%^&*()")

        assert PasswordHasher.verify_password("P@ssw0rd!#$%^&*()", hashed) is True

    def test_verify_wrong_password(self):
        hashed = PasswordHasher.hash_password("correct horse")

        assert PasswordHasher.verify_password("battery staple", hashed) is False

    def test_verify_unicode_password(self):
        hashed = PasswordHasher.hash_password("pässwörd🔒")

        assert PasswordHasher.verify_password("pässwörd🔒", hashed) is True

    def test_verify_without_hash(self):
        """Federated accounts without a hash never match"""
        assert PasswordHasher.verify_password("anything", None) is False
        assert PasswordHasher.verify_password("anything", "") is False

    def test_verify_empty_password(self):
        hashed = PasswordHasher.hash_password("secret")

        assert PasswordHasher.verify_password("", hashed) is False

    def test_verify_malformed_hash(self):
        assert PasswordHasher.verify_password("secret", "not-a-bcrypt-hash") is False

    def test_long_passwords_are_truncated_consistently(self):
        """Passwords longer than 72 bytes still verify"""
        password = "x" * 100
        hashed = PasswordHasher.hash_password(password)

        assert PasswordHasher.verify_password(password, hashed) is True

    def test_unusable_password_hash(self):
        hashed = PasswordHasher.unusable_password_hash()

        assert hashed.startswith("$2")
        assert PasswordHasher.verify_password("", hashed) is False
        assert PasswordHasher.verify_password("password", hashed) is False
