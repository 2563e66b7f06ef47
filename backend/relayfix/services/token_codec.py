"""
Hand-off token codec.

A hand-off token is the QR-code form of a hand-off code. It carries
{repairId, relayPointId, clientId, issuedAt, code} encrypted with the shared
hand-off secret, so a relay terminal can read it back and any alteration is
detected.

Uses Fernet (AES-128-CBC + HMAC-SHA256) with a PBKDF2-derived key. The
output is URL-safe base64 and can be embedded in a QR symbol as is.
"""

import base64
import binascii
import json
from dataclasses import dataclass, asdict
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from relayfix.config.handoff import DEFAULT_KEY_SALT, KDF_ITERATIONS
from relayfix.errors import MalformedToken


# Wire keys of the payload, in canonical order
_WIRE_FIELDS = {
    'repairId': 'repair_id',
    'relayPointId': 'relay_point_id',
    'clientId': 'client_id',
    'issuedAt': 'issued_at',
    'code': 'code',
}


@dataclass(frozen=True)
class HandoffPayload:
    repair_id: int
    relay_point_id: str
    client_id: str
    issued_at: int
    code: str

    def to_wire(self) -> dict:
        data = asdict(self)
        return {wire: data[attr] for wire, attr in _WIRE_FIELDS.items()}

    @classmethod
    def from_wire(cls, data) -> 'HandoffPayload':
        if not isinstance(data, dict) or set(data) != set(_WIRE_FIELDS):
            raise MalformedToken('Unexpected token payload shape')
        repair_id, issued_at = data['repairId'], data['issuedAt']
        # bool is an int subclass; a payload with true/false ids is not ours
        for value in (repair_id, issued_at):
            if not isinstance(value, int) or isinstance(value, bool):
                raise MalformedToken('Token payload ids must be integers')
        for key in ('relayPointId', 'clientId', 'code'):
            if not isinstance(data[key], str) or not data[key]:
                raise MalformedToken(f'Token payload {key} must be a non-empty string')
        return cls(
            repair_id=repair_id,
            relay_point_id=data['relayPointId'],
            client_id=data['clientId'],
            issued_at=issued_at,
            code=data['code'],
        )


class HandoffTokenCodec:
    """
    Encrypts and decrypts hand-off token payloads.

    The secret is process-wide configuration (HANDOFF_SECRET_KEY) shared by
    every relay-facing client and the validator. There is no built-in default:
    a missing secret is a configuration error.
    """

    def __init__(self, secret: str, salt: Optional[str] = None):
        if not secret:
            raise ValueError('Hand-off secret key is required')
        self._salt = (salt or DEFAULT_KEY_SALT).encode()
        self._fernet = self._create_cipher(secret)

    def _create_cipher(self, secret: str) -> Fernet:
        """Create Fernet cipher from derived key."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=self._salt,
            iterations=KDF_ITERATIONS,
        )
        key = base64.urlsafe_b64encode(kdf.derive(secret.encode()))
        return Fernet(key)

    def encode(self, payload: HandoffPayload) -> str:
        """
        Serialize and encrypt a payload.

        Returns:
            Opaque URL-safe token string
        """
        canonical = json.dumps(payload.to_wire(), sort_keys=True, separators=(',', ':'))
        return self._fernet.encrypt(canonical.encode()).decode()

    def decode(self, token: str) -> HandoffPayload:
        """
        Decrypt and deserialize a token.

        Raises:
            MalformedToken: wrong secret, corrupted or altered token, or a
                decrypted body that is not a hand-off payload
        """
        if not isinstance(token, str) or not token.strip():
            raise MalformedToken('Empty token')
        try:
            raw = self._fernet.decrypt(token.strip())
        except (InvalidToken, binascii.Error, ValueError, TypeError) as e:
            # ValueError covers non-ASCII input rejected by the base64 decoder
            raise MalformedToken('Token decryption failed') from e
        try:
            data = json.loads(raw.decode('utf-8'))
        except (UnicodeDecodeError, ValueError) as e:
            raise MalformedToken('Token body is not valid JSON') from e
        return HandoffPayload.from_wire(data)


__all__ = ['HandoffPayload', 'HandoffTokenCodec']
