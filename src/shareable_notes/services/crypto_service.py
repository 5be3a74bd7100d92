"""Password-based protection of note content.

Content is encrypted with Fernet (AES-128-CBC with an HMAC-SHA256 tag)
under a key derived from the note password with PBKDF2-HMAC-SHA256 and a
fresh random salt per message. The stored ciphertext is a single ASCII
string::

    v1$<urlsafe-base64 salt>$<fernet token>

Because the token is authenticated, a wrong password or any tampering is
reported as DecryptionError instead of yielding garbage plaintext.

Password hashes are an unsalted SHA-256 hex digest. That matches the
hashes already stored by existing collections and lets a wrong password
be rejected before running the slow key derivation, but it is a known
weakness: identical passwords produce identical hashes and the digest is
cheap to brute-force offline.
"""

import base64
import binascii
import hashlib
import hmac
import logging
import os
import secrets
import string
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from shareable_notes.config import DEFAULT_KDF_ITERATIONS
from shareable_notes.exceptions import (
    DecryptionError,
    EncryptionError,
    ErrorCode,
    InvalidPasswordError,
)
from shareable_notes.models.schema import EncryptedContent, Note, PlainContent

logger = logging.getLogger(__name__)

CIPHERTEXT_VERSION = "v1"
_SEPARATOR = "$"
_SALT_SIZE = 16
_KEY_LENGTH = 32  # Fernet key size

PASSWORD_ALPHABET = string.ascii_letters + string.digits + "!@#$%^&*"


def hash_password(password: str) -> str:
    """Hash a password for storage (one-way, deterministic)."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored hash in constant time."""
    return hmac.compare_digest(hash_password(password), password_hash)


def generate_password(length: int = 16) -> str:
    """Generate a random password from letters, digits and a few symbols."""
    if length < 1:
        raise ValueError("length must be >= 1")
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def is_encrypted(note: Note) -> bool:
    """Check if a note's content is ciphertext."""
    return note.encrypted is True


class ConfidentialityEngine:
    """Encrypts and decrypts note content under a caller-supplied password.

    Stateless apart from the key-derivation cost; safe to share between
    services. Empty passwords are accepted here: rejecting weak passwords
    is a policy of the caller.
    """

    def __init__(self, kdf_iterations: int = DEFAULT_KDF_ITERATIONS):
        """Initialize the engine.

        Args:
            kdf_iterations: PBKDF2 iteration count used for new ciphertexts
                and for decrypting existing ones.
        """
        if kdf_iterations < 1:
            raise ValueError("kdf_iterations must be >= 1")
        self.kdf_iterations = kdf_iterations

    def _derive_key(self, password: str, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=_KEY_LENGTH,
            salt=salt,
            iterations=self.kdf_iterations,
        )
        return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))

    # =========================================================================
    # Content transforms
    # =========================================================================

    def encrypt(self, plaintext: str, password: str) -> str:
        """Encrypt text with a password.

        Args:
            plaintext: Text to protect (any string, including empty).
            password: Password to derive the key from (may be empty).

        Returns:
            Versioned ciphertext string.

        Raises:
            EncryptionError: If key derivation or encryption fails.
        """
        try:
            salt = os.urandom(_SALT_SIZE)
            token = Fernet(self._derive_key(password, salt)).encrypt(
                plaintext.encode("utf-8")
            )
        except (ValueError, TypeError, UnicodeEncodeError) as e:
            logger.error(f"Encryption failed: {type(e).__name__}")
            raise EncryptionError(original_error=e) from e

        encoded_salt = base64.urlsafe_b64encode(salt).decode("ascii")
        return _SEPARATOR.join(
            (CIPHERTEXT_VERSION, encoded_salt, token.decode("ascii"))
        )

    def decrypt(self, ciphertext: str, password: str) -> str:
        """Decrypt text produced by encrypt().

        Raises:
            DecryptionError: If the ciphertext is malformed or corrupted, or
                the password is wrong.
        """
        parts = ciphertext.split(_SEPARATOR)
        if len(parts) != 3 or parts[0] != CIPHERTEXT_VERSION:
            raise DecryptionError("Malformed ciphertext")

        _, encoded_salt, token = parts
        try:
            salt = base64.urlsafe_b64decode(encoded_salt.encode("ascii"))
        except (binascii.Error, ValueError, UnicodeEncodeError) as e:
            raise DecryptionError("Malformed ciphertext", original_error=e) from e
        if len(salt) != _SALT_SIZE:
            raise DecryptionError("Malformed ciphertext")

        try:
            raw = Fernet(self._derive_key(password, salt)).decrypt(
                token.encode("ascii")
            )
        except (InvalidToken, UnicodeEncodeError) as e:
            logger.debug("Decryption rejected: wrong password or corrupted data")
            raise DecryptionError(original_error=e) from e

        # Structural second check: protected content is always text
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError(original_error=e) from e

    # Module-level helpers exposed on the engine for callers holding one
    hash_password = staticmethod(hash_password)
    verify_password = staticmethod(verify_password)
    generate_password = staticmethod(generate_password)
    is_encrypted = staticmethod(is_encrypted)

    # =========================================================================
    # Note transforms
    # =========================================================================

    def encrypt_note(self, note: Note, password: str) -> Note:
        """Return an encrypted copy of a plaintext note.

        Raises:
            EncryptionError: If the note is already encrypted or the
                primitive fails.
        """
        if note.encrypted:
            raise EncryptionError(
                "Note is already encrypted",
                note_id=note.id,
                code=ErrorCode.ALREADY_ENCRYPTED,
            )
        try:
            ciphertext = self.encrypt(note.content, password)
        except EncryptionError as e:
            e.note_id = note.id
            e.details["note_id"] = note.id
            raise
        return note.with_body(EncryptedContent(ciphertext, hash_password(password)))

    def decrypt_note(self, note: Note, password: str) -> Note:
        """Return a copy of a note with readable content.

        A plaintext note is returned unchanged. The copy of an encrypted
        note keeps ``encrypted`` and ``password_hash`` as they were; turning
        it back into a plaintext note is the caller's decision (see
        ``to_plaintext``).

        Raises:
            InvalidPasswordError: If a stored hash does not match the password.
            DecryptionError: If the content cannot be decrypted.
        """
        body = note.body
        if isinstance(body, PlainContent):
            return note

        if body.password_hash and not verify_password(password, body.password_hash):
            raise InvalidPasswordError(note_id=note.id)

        try:
            plaintext = self.decrypt(body.ciphertext, password)
        except DecryptionError as e:
            e.note_id = note.id
            e.details["note_id"] = note.id
            raise
        return note.model_copy(update={"content": plaintext}, deep=True)

    def to_plaintext(self, note: Note, password: str) -> Note:
        """Decrypt a note and drop its protection (flag and hash cleared)."""
        decrypted = self.decrypt_note(note, password)
        return decrypted.with_body(PlainContent(decrypted.content))

    def check_password(self, note: Note, password: str) -> Optional[bool]:
        """Pre-validate a password without decrypting.

        Returns:
            True or False when the note stores a hash, None when it cannot
            be checked cheaply (plaintext note or no stored hash).
        """
        if not note.encrypted or not note.password_hash:
            return None
        return verify_password(password, note.password_hash)
