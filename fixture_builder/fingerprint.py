"""
Rebuild detection.

Generating fixtures means wiping and repopulating the database, so a test
suite should only do it when something that shapes the fixtures changed:
the schema, the setup procedure, or a legacy fixture file. `Fingerprint`
hashes those files and compares against the hashes stored by the last
successful build.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Dict, Iterable, Optional

import yaml

from fixture_builder.utils.logging import get_logger

log = get_logger(__name__)


def file_digest(path: Path) -> Optional[str]:
    """SHA-1 of a file's bytes, or None when it does not exist."""
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return None
    return hashlib.sha1(data).hexdigest()


class Fingerprint:
    """
    Hashes of the files a build depends on.

    Parameters
    ----------
    files : iterable of paths
        Files whose content decides whether fixtures are stale.
    store : Path
        YAML file the hashes of the last successful build are kept in.
    """

    def __init__(self, files: Iterable[Path | str], store: Path) -> None:
        self.files = [Path(f) for f in dict.fromkeys(str(f) for f in files)]
        self.store = Path(store)

    def current(self) -> Dict[str, Optional[str]]:
        return {str(path): file_digest(path) for path in self.files}

    def stored(self) -> Dict[str, Optional[str]]:
        if not self.store.exists():
            return {}
        data = yaml.safe_load(self.store.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else {}

    def changed(self) -> bool:
        """True when no build was recorded yet or any watched file differs."""
        if not self.store.exists():
            return True
        return self.current() != self.stored()

    def clear(self) -> None:
        """Forget the last build so an unfinished one is never taken as current."""
        self.store.unlink(missing_ok=True)

    def save(self) -> None:
        self.store.parent.mkdir(parents=True, exist_ok=True)
        self.store.write_text(
            yaml.safe_dump(self.current(), sort_keys=True, default_flow_style=False),
            encoding="utf-8",
        )
        log.debug("Fingerprint saved", extra={"store": str(self.store), "files": len(self.files)})


__all__ = ["Fingerprint", "file_digest"]
