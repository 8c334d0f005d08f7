# src/opreg/client.py
from __future__ import annotations

import json
import time
import urllib.error
import urllib.request
from typing import Any, Dict, Optional

from opreg.crypto.sig import CallEnvelope, pubkey_hex_from_privkey, sign_call
from opreg.runtime.errors import RegistryError

Json = Dict[str, Any]


class RegistryClient:
    """Signs registry calls with a private key and posts them to /v1/call.

    The caller identity sent to the server is the public key derived from
    `privkey`, so only a client holding the operator key gets past the
    registry's identity check.
    """

    def __init__(self, base_url: str, *, privkey: str, timeout_s: float = 10.0) -> None:
        self.base_url = str(base_url).rstrip("/")
        self._privkey = privkey
        self.caller = pubkey_hex_from_privkey(privkey)
        self.timeout_s = float(timeout_s)

    def _post(self, path: str, payload: Json) -> Json:
        req = urllib.request.Request(
            f"{self.base_url}{path}",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                body = resp.read()
        except urllib.error.HTTPError as e:
            body = e.read()
            try:
                err = json.loads(body.decode("utf-8")).get("error") or {}
            except (ValueError, AttributeError):
                err = {}
            raise RegistryError(
                str(err.get("code") or f"http_{e.code}"),
                str(err.get("message") or e.reason),
                err.get("details"),
            ) from e

        out = json.loads(body.decode("utf-8"))
        if not isinstance(out, dict):
            raise RegistryError("bad_response", "response is not a JSON object", {"body": body[:200].decode("utf-8", "replace")})
        return out

    def call(self, function: str, *args: Any) -> Any:
        env = CallEnvelope(
            caller=self.caller,
            function=function,
            args=json.dumps(list(args), separators=(",", ":")),
            nonce=int(time.time() * 1000),
        )
        signed = sign_call(env, privkey=self._privkey)
        return self._post("/v1/call", signed.to_json()).get("result")

    def get_account(self, account_id: str) -> Optional[str]:
        out = self.call("getAccount", account_id)
        return None if out is None else str(out)

    def set_account(self, account_id: str, address: str) -> None:
        self.call("setAccount", account_id, address)
