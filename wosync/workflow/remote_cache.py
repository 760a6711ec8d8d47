"""
Last known remote listings, per work order.

Written after every real push run. A dry run has no remote session, so
it checks duplicates against these listings when it has them.
"""

import json
import logging
from datetime import datetime
from pathlib import Path

from wosync.channel.base import ExistingService
from wosync.lib.validate import ValidationError, validate_before_write, validate_file

logger = logging.getLogger(__name__)


class RemoteServiceCache:
    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            return validate_file(self.path, "remote_cache")
        except ValidationError as e:
            # Only a hint for dry runs; an unreadable cache is treated as empty
            logger.warning(f"[CACHE] Ignoring unreadable remote cache {self.path}: {e}")
            return {}

    def load(self) -> dict[str, list[ExistingService]]:
        return {
            number: [ExistingService.from_dict(s) for s in item["services"]]
            for number, item in self._read().items()
        }

    def update(self, listings: dict[str, list[ExistingService]]) -> None:
        """Replace the cached listing of each given work order."""
        data = self._read()
        fetched_at = datetime.now().isoformat(timespec="seconds")
        for number, services in listings.items():
            data[number] = {
                "fetchedAt": fetched_at,
                "services": [s.to_dict() for s in services],
            }

        validate_before_write(data, "remote_cache", self.path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2) + "\n")
        logger.debug(f"[CACHE] Stored listings for {len(listings)} work order(s)")
