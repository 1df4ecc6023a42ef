# Vault - Encryption Envelope
#
# Master password -> encryption key (scrypt)
# Vault record -> AES-256-GCM envelope {kdf, salt, iv, authTag, data}
# Fresh salt + nonce on every seal, secret buffers wiped on every exit path

import base64
import binascii
import json
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from .exceptions import DecryptionError, KdfError

logger = logging.getLogger(__name__)

Buffer = Union[bytearray, memoryview]


@dataclass(frozen=True)
class EncryptedEnvelope:
    """At-rest representation of a vault. Binary fields are raw bytes here
    and base64 in the serialized form."""
    kdf: str
    salt: bytes
    iv: bytes
    auth_tag: bytes
    data: bytes

    def to_dict(self) -> Dict[str, str]:
        return {
            "kdf": self.kdf,
            "salt": CryptoEnvelope.encode_for_storage(self.salt),
            "iv": CryptoEnvelope.encode_for_storage(self.iv),
            "authTag": CryptoEnvelope.encode_for_storage(self.auth_tag),
            "data": CryptoEnvelope.encode_for_storage(self.data),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, payload: Any) -> "EncryptedEnvelope":
        """Parse a stored envelope.

        Raises:
            ValueError: If a field is missing, not base64, or the wrong size.
        """
        if not isinstance(payload, dict):
            raise ValueError("envelope is not an object")
        try:
            envelope = cls(
                kdf=str(payload["kdf"]),
                salt=CryptoEnvelope.decode_from_storage(payload["salt"]),
                iv=CryptoEnvelope.decode_from_storage(payload["iv"]),
                auth_tag=CryptoEnvelope.decode_from_storage(payload["authTag"]),
                data=CryptoEnvelope.decode_from_storage(payload["data"]),
            )
        except KeyError as exc:
            raise ValueError(f"envelope field missing: {exc}") from exc

        if envelope.kdf != CryptoEnvelope.KDF_ID:
            raise ValueError(f"unsupported kdf {envelope.kdf!r}")
        if len(envelope.salt) != CryptoEnvelope.SALT_LENGTH:
            raise ValueError("bad salt length")
        if len(envelope.iv) != CryptoEnvelope.NONCE_LENGTH:
            raise ValueError("bad iv length")
        if len(envelope.auth_tag) != CryptoEnvelope.TAG_LENGTH:
            raise ValueError("bad auth tag length")
        return envelope

    @classmethod
    def from_json(cls, text: str) -> "EncryptedEnvelope":
        return cls.from_dict(json.loads(text))


class CryptoEnvelope:
    """
    Authenticated encryption of a JSON-serializable record under a password.

    Flow:
    1. scrypt derives a 256-bit key from password + random 16-byte salt
    2. The record is serialized canonically (sorted keys, compact JSON)
    3. AES-256-GCM encrypts it under a random 12-byte nonce
    4. Key and plaintext buffers are wiped before returning

    A salt is never reused, so a (key, nonce) pair is never reused either.
    """

    KDF_ID = "scrypt"
    # scrypt cost: N=2^15, r=8, p=1 -> 32 MiB, tens of ms per derivation
    SCRYPT_N = 2 ** 15
    SCRYPT_R = 8
    SCRYPT_P = 1
    KEY_LENGTH = 32    # 256 bits for AES-256
    SALT_LENGTH = 16   # 128-bit salt
    NONCE_LENGTH = 12  # 96-bit nonce for GCM
    TAG_LENGTH = 16    # GCM tag appended by AESGCM.encrypt

    @staticmethod
    def derive_key(password: str, salt: bytes) -> bytearray:
        """
        Derive a 32-byte key from the master password.

        Returns a mutable buffer so the caller can wipe() it.

        Raises:
            KdfError: If the KDF cannot allocate its working memory.
        """
        kdf = Scrypt(
            salt=salt,
            length=CryptoEnvelope.KEY_LENGTH,
            n=CryptoEnvelope.SCRYPT_N,
            r=CryptoEnvelope.SCRYPT_R,
            p=CryptoEnvelope.SCRYPT_P,
        )
        secret = bytearray(password.encode("utf-8", "surrogatepass"))
        try:
            return bytearray(kdf.derive(bytes(secret)))
        except MemoryError as exc:
            raise KdfError("Key derivation failed: not enough memory") from exc
        finally:
            CryptoEnvelope.wipe(secret)

    @staticmethod
    def wipe(buffer: Optional[Buffer]) -> None:
        """Overwrite a buffer in place with random bytes, then zeros."""
        if buffer is None:
            return
        view = memoryview(buffer).cast("B")
        size = len(view)
        if size == 0:
            return
        view[:] = os.urandom(size)
        view[:] = bytes(size)
        view.release()

    @staticmethod
    @contextmanager
    def secret(buffer: bytearray) -> Iterator[bytearray]:
        """Scope a secret buffer; it is wiped when the block exits."""
        try:
            yield buffer
        finally:
            CryptoEnvelope.wipe(buffer)

    @staticmethod
    def serialize(record: Dict[str, Any]) -> bytearray:
        """Canonical byte form of a record (sorted keys, no whitespace).

        Non-ASCII characters are \\u-escaped, so strings holding lone
        surrogates survive the round trip.
        """
        text = json.dumps(record, sort_keys=True, separators=(",", ":"))
        return bytearray(text.encode("utf-8"))

    @staticmethod
    def seal(record: Dict[str, Any], password: str) -> EncryptedEnvelope:
        """
        Encrypt a record into a fresh envelope.

        Args:
            record: JSON-serializable mapping (the decrypted vault)
            password: Master password

        Returns:
            EncryptedEnvelope with a new salt and nonce
        """
        salt = os.urandom(CryptoEnvelope.SALT_LENGTH)
        nonce = os.urandom(CryptoEnvelope.NONCE_LENGTH)

        with CryptoEnvelope.secret(CryptoEnvelope.serialize(record)) as plaintext:
            with CryptoEnvelope.secret(CryptoEnvelope.derive_key(password, salt)) as key:
                sealed = AESGCM(key).encrypt(nonce, plaintext, None)

        tag_at = len(sealed) - CryptoEnvelope.TAG_LENGTH
        return EncryptedEnvelope(
            kdf=CryptoEnvelope.KDF_ID,
            salt=salt,
            iv=nonce,
            auth_tag=sealed[tag_at:],
            data=sealed[:tag_at],
        )

    @staticmethod
    def open(envelope: Union[EncryptedEnvelope, Dict[str, Any]], password: str) -> Dict[str, Any]:
        """
        Verify and decrypt an envelope.

        Accepts either a parsed EncryptedEnvelope or its stored dict form.

        Raises:
            DecryptionError: For every failure cause (wrong password, tampered
                tag or data, malformed envelope). The cause goes to the debug
                log only.
            KdfError: If key derivation runs out of memory.
        """
        try:
            if not isinstance(envelope, EncryptedEnvelope):
                envelope = EncryptedEnvelope.from_dict(envelope)
        except (ValueError, TypeError, binascii.Error) as exc:
            logger.debug("Envelope rejected: %s", exc)
            raise DecryptionError() from None

        key = CryptoEnvelope.derive_key(password, envelope.salt)
        decrypted: Optional[bytearray] = None
        try:
            decrypted = bytearray(
                AESGCM(key).decrypt(envelope.iv, envelope.data + envelope.auth_tag, None)
            )
            record = json.loads(decrypted.decode("utf-8"))
            if not isinstance(record, dict):
                raise ValueError("decrypted payload is not an object")
            return record
        except InvalidTag:
            logger.debug("Envelope authentication failed")
            raise DecryptionError() from None
        except ValueError as exc:
            logger.debug("Decrypted payload rejected: %s", exc)
            raise DecryptionError() from None
        finally:
            CryptoEnvelope.wipe(key)
            CryptoEnvelope.wipe(decrypted)

    @staticmethod
    def encode_for_storage(data: bytes) -> str:
        """Encode binary data for the JSON envelope (base64)."""
        return base64.b64encode(data).decode("utf-8")

    @staticmethod
    def decode_from_storage(data: Any) -> bytes:
        """Decode a base64 envelope field, rejecting non-alphabet input."""
        if not isinstance(data, str):
            raise ValueError("envelope field is not a string")
        return base64.b64decode(data.encode("utf-8"), validate=True)
