# src/opreg/crypto/sig.py
from __future__ import annotations

import base64
import json
import os
from dataclasses import dataclass, replace
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

Json = Dict[str, Any]


def _decode_bytes(s: str) -> bytes:
    s = s.strip()
    if not s:
        raise ValueError("empty string")
    # hex
    try:
        return bytes.fromhex(s)
    except ValueError:
        pass
    # base64 / base64url
    try:
        padding = "=" * (-len(s) % 4)
        s2 = (s + padding).replace("-", "+").replace("_", "/")
        return base64.b64decode(s2, validate=True)
    except ValueError as e:
        raise ValueError("not hex or base64") from e


def _private_key(privkey: str) -> Ed25519PrivateKey:
    pk_b = _decode_bytes(privkey)
    if len(pk_b) == 64:
        # 64-byte expanded keys carry the seed in the first half.
        pk_b = pk_b[:32]
    if len(pk_b) != 32:
        raise ValueError("ed25519 privkey must be 32-byte seed (or 64-byte expanded key)")
    return Ed25519PrivateKey.from_private_bytes(pk_b)


@dataclass(frozen=True)
class CallEnvelope:
    """A request to run one registry function, signed by its caller.

    `caller` is the hex-encoded Ed25519 public key of the signer.
    """

    caller: str
    function: str
    args: Any
    nonce: int = 0
    sig: str = ""

    @staticmethod
    def from_json(j: Any) -> "CallEnvelope":
        if isinstance(j, CallEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)
        return CallEnvelope(
            caller=str(j.get("caller", "") or ""),
            function=str(j.get("function", "") or ""),
            args=j.get("args", "[]"),
            nonce=int(j.get("nonce", 0) or 0),
            sig=str(j.get("sig", "") or ""),
        )

    def to_json(self) -> Json:
        return {
            "caller": self.caller,
            "function": self.function,
            "args": self.args,
            "nonce": self.nonce,
            "sig": self.sig,
        }


def canonical_call_message(*, caller: str, function: str, args: Any, nonce: int) -> bytes:
    obj: Json = {
        "caller": str(caller),
        "function": str(function),
        "args": args,
        "nonce": int(nonce),
    }
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def pubkey_hex_from_privkey(privkey: str) -> str:
    key = _private_key(privkey)
    raw = key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return raw.hex()


def generate_keypair() -> tuple[str, str]:
    """Return (privkey_hex, pubkey_hex) for a fresh Ed25519 key."""
    key = Ed25519PrivateKey.generate()
    priv = key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return priv.hex(), pubkey_hex_from_privkey(priv.hex())


def sign_ed25519(*, message: bytes, privkey: str) -> str:
    return _private_key(privkey).sign(message).hex()


def verify_ed25519_signature(*, message: bytes, sig: str, pubkey: str) -> bool:
    try:
        key = Ed25519PublicKey.from_public_bytes(_decode_bytes(pubkey))
        key.verify(_decode_bytes(sig), message)
        return True
    except (InvalidSignature, ValueError):
        return False


def sign_call(env: CallEnvelope, *, privkey: str) -> CallEnvelope:
    """Return a copy of env with its sig populated."""
    msg = canonical_call_message(caller=env.caller, function=env.function, args=env.args, nonce=env.nonce)
    return replace(env, sig=sign_ed25519(message=msg, privkey=privkey))


def _unsafe_dev_allows_unsigned() -> bool:
    """Allow unsigned calls ONLY in explicit unsafe dev mode.

    Requirements:
      - OPREG_MODE=testnet
      - OPREG_UNSAFE_DEV=1
    """
    mode = (os.environ.get("OPREG_MODE") or "prod").strip().lower()
    unsafe = (os.environ.get("OPREG_UNSAFE_DEV") or "").strip()
    return bool(mode == "testnet" and unsafe == "1")


def verify_call(env: CallEnvelope) -> bool:
    """Check that env was signed by the key named in env.caller.

    An empty signature only passes in unsafe dev mode, where the caller is
    taken at face value.
    """
    if not env.caller.strip():
        return False
    if not env.sig.strip():
        return _unsafe_dev_allows_unsigned()
    msg = canonical_call_message(caller=env.caller, function=env.function, args=env.args, nonce=env.nonce)
    return verify_ed25519_signature(message=msg, sig=env.sig, pubkey=env.caller)
