# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/komodoctl/scm/keys.py

from __future__ import annotations

import re
from typing import Optional, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

_ENV_BLOCK = re.compile(r'environment = """([^"]*?)"""')
_PRIVATE_KEY = re.compile(r'SSH_PRIVATE_KEY=([^\n"]+)')
_PUBLIC_KEY = re.compile(r'SSH_PUBLIC_KEY=([^\n"]+)')


def generate_ssh_keypair() -> Tuple[str, str]:
    """Return (private key in OpenSSH PEM, public key in authorized_keys form)."""
    key = Ed25519PrivateKey.generate()
    private = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.OpenSSH,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public = key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    ).decode()
    return private, public.strip()


def inject_ssh_keys(contents: str, private_key: str, public_key: str) -> str:
    """
    Append SSH_PRIVATE_KEY / SSH_PUBLIC_KEY to every environment = \"\"\"...\"\"\" block.
    Newlines in the private key are escaped so it stays on one line.
    """
    addition = "\nSSH_PRIVATE_KEY={}\nSSH_PUBLIC_KEY={}".format(
        private_key.replace("\n", "\\n"),
        public_key,
    )

    def _sub(match: re.Match) -> str:
        return f'environment = """{match.group(1)}{addition}"""'

    return _ENV_BLOCK.sub(_sub, contents)


def extract_ssh_keys(contents: str) -> Optional[Tuple[str, str]]:
    """Keys previously written by inject_ssh_keys, or None."""
    priv = _PRIVATE_KEY.search(contents)
    pub = _PUBLIC_KEY.search(contents)
    if not priv or not pub:
        return None
    return priv.group(1).replace("\\n", "\n"), pub.group(1)
