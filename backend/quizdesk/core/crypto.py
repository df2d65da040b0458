from __future__ import annotations

import base64
import binascii
import os
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from quizdesk.core.config import ANSWER_KEY_MIN_BYTES, settings


NONCE_BYTES = 12
TAG_BYTES = 16
ENVELOPE_SEP = ":"


class IntegrityError(Exception):
    """Stored answer envelope is malformed or failed authentication."""


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def _unb64(value: str) -> bytes:
    return base64.b64decode(value.encode("ascii"), validate=True)


class AnswerCipher:
    """AES-256-GCM sealing of serialized answer payloads.

    Envelope: ``base64(nonce):base64(tag):base64(ciphertext)``.
    """

    def __init__(self, key: str | bytes):
        raw = key.encode("utf-8") if isinstance(key, str) else bytes(key)
        if len(raw) < ANSWER_KEY_MIN_BYTES:
            raise ValueError(f"answer encryption key must be at least {ANSWER_KEY_MIN_BYTES} bytes")
        self._aead = AESGCM(raw[:32])

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_BYTES)
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return ENVELOPE_SEP.join([_b64(nonce), _b64(tag), _b64(ciphertext)])

    def decrypt(self, envelope: str) -> str:
        parts = str(envelope or "").split(ENVELOPE_SEP)
        if len(parts) != 3:
            raise IntegrityError("malformed answer envelope")
        try:
            nonce, tag, ciphertext = (_unb64(p) for p in parts)
        except (binascii.Error, ValueError) as e:
            raise IntegrityError("malformed answer envelope") from e
        if len(nonce) != NONCE_BYTES or len(tag) != TAG_BYTES:
            raise IntegrityError("malformed answer envelope")

        try:
            plain = self._aead.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag as e:
            raise IntegrityError("answer envelope failed authentication") from e

        try:
            return plain.decode("utf-8")
        except UnicodeDecodeError as e:
            raise IntegrityError("answer payload is not utf-8") from e


@lru_cache(maxsize=1)
def get_answer_cipher() -> AnswerCipher:
    return AnswerCipher(str(settings.answer_encryption_key or ""))
