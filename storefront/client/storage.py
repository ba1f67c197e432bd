"""File-backed session storage.

Checkout state that has to survive the gateway redirect lives here. A
new process built over the same directory and session id sees the same
values, which is what a page reload amounts to for this client.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger()

# Keys the checkout flow persists
SHIPPING_ADDRESS_KEY = "shippingAddress"
COD_DETAILS_KEY = "codDetails"
PENDING_ORDER_KEY = "pendingOrderData"
PAYMENT_INTENT_KEY = "paymentIntentId"
PROCESSED_CALLBACKS_KEY = "processedPaymentCallbacks"
CART_KEY = "cart"


class SessionStorage:
    """JSON key-value store scoped to one browser-like session.

    Each session is one file under the storage directory. Writes go to a
    temp file that is renamed over the original, so a crash never leaves
    a half-written session behind.
    """

    def __init__(self, storage_dir: str | Path, session_id: str) -> None:
        self.storage_dir = Path(storage_dir)
        self.session_id = session_id
        self.path = self.storage_dir / f"{session_id}.json"

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable session storage", path=str(self.path))
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=self.storage_dir, prefix=f".{self.session_id}_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(temp_path, self.path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, *keys: str) -> None:
        data = self._read()
        if not any(key in data for key in keys):
            return
        for key in keys:
            data.pop(key, None)
        self._write(data)

    def contains(self, key: str) -> bool:
        return key in self._read()

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
