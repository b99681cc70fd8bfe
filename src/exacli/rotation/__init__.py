"""Multi-key rotation for exacli.

Spreads requests across several Exa API keys, tracks per-key health, puts
rate-limited keys on cooldown, and persists all of it between invocations.

* :class:`~exacli.rotation.pool.CredentialPool` -- the configured keys.
* :class:`~exacli.rotation.state.RotationStateStore` -- ``state.json``.
* :func:`~exacli.rotation.selector.select_credential` -- the policy.
* :class:`~exacli.rotation.manager.KeyManager` -- ties them together.
"""

from exacli.rotation.manager import KeyManager, KeyStatus
from exacli.rotation.pool import CredentialPool, mask_key
from exacli.rotation.selector import select_credential
from exacli.rotation.state import RotationStateStore

__all__ = [
    "CredentialPool",
    "KeyManager",
    "KeyStatus",
    "RotationStateStore",
    "mask_key",
    "select_credential",
]
