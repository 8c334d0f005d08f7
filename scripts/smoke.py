#!/usr/bin/env python3

"""Smoke test for an opreg deployment.

It verifies, against a fresh SQLite db:
  - the FastAPI app boots and serves /health
  - the operator can write and read an entry through /v1/call
  - a second key is rejected for both reads and writes
  - the entry survives rebuilding the app on the same db

Usage:
  python3 scripts/smoke.py
"""

from __future__ import annotations

import json
import os
import tempfile

from fastapi.testclient import TestClient

from opreg.crypto.sig import CallEnvelope, generate_keypair, sign_call


def _call(c: TestClient, priv: str, pub: str, function: str, *args: str, nonce: int) -> tuple[int, dict]:
    env = CallEnvelope(caller=pub, function=function, args=json.dumps(list(args)), nonce=nonce)
    r = c.post("/v1/call", json=sign_call(env, privkey=priv).to_json())
    return r.status_code, r.json()


def main() -> int:
    op_priv, op_pub = generate_keypair()
    atk_priv, atk_pub = generate_keypair()

    with tempfile.TemporaryDirectory(prefix="opreg-smoke-") as td:
        os.environ["OPREG_DB_PATH"] = os.path.join(td, "opreg.db")
        os.environ["OPREG_OPERATOR"] = op_pub
        os.environ.setdefault("OPREG_MODE", "dev")

        from opreg.api.app import create_app

        with TestClient(create_app()) as c:
            assert c.get("/health").json()["ok"] is True

            status, _ = _call(c, op_priv, op_pub, "setAccount", "alice", "addr1", nonce=1)
            assert status == 200, status

            status, body = _call(c, op_priv, op_pub, "getAccount", "alice", nonce=2)
            assert (status, body.get("result")) == (200, "addr1"), body

            status, _ = _call(c, atk_priv, atk_pub, "getAccount", "alice", nonce=3)
            assert status == 403, status
            status, _ = _call(c, atk_priv, atk_pub, "setAccount", "alice", "addr2", nonce=4)
            assert status == 403, status

        with TestClient(create_app()) as c:
            status, body = _call(c, op_priv, op_pub, "getAccount", "alice", nonce=5)
            assert (status, body.get("result")) == (200, "addr1"), body

    print("opreg smoke OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
