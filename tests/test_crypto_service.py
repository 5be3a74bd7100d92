"""Tests for the confidentiality engine."""
import base64

import pytest

from shareable_notes.exceptions import (
    DecryptionError,
    EncryptionError,
    ErrorCode,
    InvalidPasswordError,
)
from shareable_notes.models.schema import Note
from shareable_notes.services.crypto_service import (
    CIPHERTEXT_VERSION,
    PASSWORD_ALPHABET,
    generate_password,
    hash_password,
    is_encrypted,
    verify_password,
)


class TestContentEncryption:
    """Tests for encrypt()/decrypt() on raw text."""

    @pytest.mark.parametrize(
        "plaintext",
        ["hello", "", "<p>rich <b>text</b></p>", "ünïcödé 🙂 文字", "x" * 10_000],
    )
    def test_round_trip(self, engine, plaintext):
        ciphertext = engine.encrypt(plaintext, "pw1")
        assert engine.decrypt(ciphertext, "pw1") == plaintext

    def test_empty_password_accepted(self, engine):
        ciphertext = engine.encrypt("secret", "")
        assert engine.decrypt(ciphertext, "") == "secret"

    def test_ciphertext_hides_plaintext(self, engine):
        ciphertext = engine.encrypt("hello world", "pw1")
        assert "hello" not in ciphertext
        assert ciphertext.startswith(f"{CIPHERTEXT_VERSION}$")

    def test_fresh_salt_per_message(self, engine):
        """Encrypting the same text twice yields different ciphertexts."""
        assert engine.encrypt("same", "pw") != engine.encrypt("same", "pw")

    def test_wrong_password_detected(self, engine):
        ciphertext = engine.encrypt("hello", "pw1")
        with pytest.raises(DecryptionError) as exc_info:
            engine.decrypt(ciphertext, "pw2")
        assert exc_info.value.code == ErrorCode.DECRYPTION_FAILED

    @pytest.mark.parametrize(
        "ciphertext",
        [
            "",
            "not encrypted at all",
            "U2FsdGVkX1+legacyCryptoJsFormat",
            "v2$abc$def",
            "v1$!!!$token",
            "v1$" + base64.urlsafe_b64encode(b"short").decode() + "$token",
        ],
    )
    def test_malformed_ciphertext(self, engine, ciphertext):
        with pytest.raises(DecryptionError):
            engine.decrypt(ciphertext, "pw")

    def test_tampered_token_detected(self, engine):
        ciphertext = engine.encrypt("hello", "pw1")
        version, salt, token = ciphertext.split("$")
        flipped = token[:-5] + ("A" if token[-5] != "A" else "B") + token[-4:]
        with pytest.raises(DecryptionError):
            engine.decrypt("$".join((version, salt, flipped)), "pw1")

    def test_invalid_iteration_count(self):
        from shareable_notes.services.crypto_service import ConfidentialityEngine

        with pytest.raises(ValueError):
            ConfidentialityEngine(kdf_iterations=0)


class TestPasswordHashing:
    """Tests for hash_password()/verify_password()."""

    def test_hash_is_deterministic(self):
        assert hash_password("pw1") == hash_password("pw1")

    def test_hash_is_sha256_hex(self):
        digest = hash_password("password")
        assert digest == "5e884898da28047151d0e56f8dc6292773603d0d6aabbdd62a11ef721d1542d8"

    def test_verify(self):
        digest = hash_password("pw1")
        assert verify_password("pw1", digest) is True
        assert verify_password("pw2", digest) is False
        assert verify_password("", digest) is False

    def test_engine_exposes_helpers(self, engine):
        assert engine.hash_password("pw") == hash_password("pw")
        assert engine.verify_password("pw", hash_password("pw"))


class TestNoteTransforms:
    """Tests for encrypt_note()/decrypt_note()."""

    def test_encrypt_note(self, engine):
        note = Note(title="A", content="hello", tags=["t"])
        locked = engine.encrypt_note(note, "pw1")

        assert locked.encrypted is True
        assert locked.content != "hello"
        assert locked.password_hash == hash_password("pw1")
        assert locked.id == note.id
        assert locked.title == "A"
        assert locked.tags == ["t"]
        assert is_encrypted(locked)
        # Input is not mutated
        assert note.encrypted is False
        assert note.content == "hello"

    def test_no_double_encryption(self, engine):
        locked = engine.encrypt_note(Note(content="hello"), "pw1")
        with pytest.raises(EncryptionError) as exc_info:
            engine.encrypt_note(locked, "pw1")
        assert exc_info.value.code == ErrorCode.ALREADY_ENCRYPTED

    def test_decrypt_note_keeps_flag(self, engine):
        """decrypt_note returns readable content but leaves encryption state alone."""
        locked = engine.encrypt_note(Note(content="hello"), "pw1")
        view = engine.decrypt_note(locked, "pw1")
        assert view.content == "hello"
        assert view.encrypted is True
        assert view.password_hash == locked.password_hash

    def test_decrypt_plain_note_is_noop(self, engine):
        note = Note(content="hello")
        assert engine.decrypt_note(note, "anything") is note

    def test_wrong_password_fails_fast_with_hash(self, engine):
        locked = engine.encrypt_note(Note(content="hello"), "pw1")
        with pytest.raises(InvalidPasswordError) as exc_info:
            engine.decrypt_note(locked, "wrong")
        assert exc_info.value.note_id == locked.id

    def test_hash_mismatch_checked_before_decrypt(self, engine, monkeypatch):
        locked = engine.encrypt_note(Note(content="hello"), "pw1")

        def _fail(*args, **kwargs):
            raise AssertionError("decrypt should not run")

        monkeypatch.setattr(engine, "decrypt", _fail)
        with pytest.raises(InvalidPasswordError):
            engine.decrypt_note(locked, "wrong")

    def test_wrong_password_without_hash(self, engine):
        """Notes without a stored hash still reject a wrong password."""
        locked = engine.encrypt_note(Note(content="hello"), "pw1")
        legacy = locked.model_copy(update={"password_hash": None})
        with pytest.raises(DecryptionError):
            engine.decrypt_note(legacy, "wrong")
        assert engine.decrypt_note(legacy, "pw1").content == "hello"

    def test_corrupted_content_with_matching_hash(self, engine):
        """Right password but damaged ciphertext is reported as corruption."""
        locked = engine.encrypt_note(Note(content="hello"), "pw1")
        damaged = locked.model_copy(update={"content": "v1$garbage"})
        with pytest.raises(DecryptionError) as exc_info:
            engine.decrypt_note(damaged, "pw1")
        assert exc_info.value.note_id == locked.id

    def test_to_plaintext_clears_protection(self, engine):
        locked = engine.encrypt_note(Note(content="hello"), "pw1")
        plain = engine.to_plaintext(locked, "pw1")
        assert plain.content == "hello"
        assert plain.encrypted is False
        assert plain.password_hash is None

    def test_check_password(self, engine):
        note = Note(content="hello")
        assert engine.check_password(note, "pw1") is None
        locked = engine.encrypt_note(note, "pw1")
        assert engine.check_password(locked, "pw1") is True
        assert engine.check_password(locked, "nope") is False


class TestGeneratePassword:
    """Tests for the random password generator."""

    def test_default_length(self):
        assert len(generate_password()) == 16

    def test_alphabet(self):
        password = generate_password(200)
        assert set(password) <= set(PASSWORD_ALPHABET)

    def test_passwords_differ(self):
        assert generate_password() != generate_password()

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            generate_password(0)
