"""
Cached-connection flag.

The only local state the platform persists: whether the last session ended
connected, so the next start can reconnect without user interaction.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from crowdchain.config import settings


logger = logging.getLogger(__name__)


class ConnectionCache:
    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or settings.connection_cache_path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable connection cache {self.path}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def has_cached_connection(self) -> bool:
        data = self.load()
        return bool(data and data.get("provider"))

    def remember(self, provider_name: str, account_address: Optional[str] = None) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps({
                "provider": provider_name,
                "account": account_address,
                "updatedAt": datetime.now(timezone.utc).isoformat(),
            }),
            encoding="utf-8",
        )

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
