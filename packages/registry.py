"""
Registry of the packages this dispatcher can route to.

Packages are installed and deployed elsewhere; the registry only records, in a
fixed order, where each one lives and which intent labels it handles. The order
matters: when two packages claim the same label, the first registered wins.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from shared.models import Package

logger = logging.getLogger(__name__)


class PackageRegistry:
    def __init__(self, packages: Iterable[Package] = ()):
        self._packages: Dict[str, Package] = {}
        for package in packages:
            self.register(package)

    @classmethod
    def from_config(cls, entries: List[Dict[str, Any]]) -> "PackageRegistry":
        """
        Build a registry from the `packages` section of config.json.

        Each entry needs `name` and `url`; `triggers` is a list of intent
        labels. Incomplete entries are logged and skipped.
        """
        registry = cls()
        for entry in entries or []:
            name = (entry.get("name") or "").strip()
            url = (entry.get("url") or "").strip()
            if not name or not url:
                logger.warning(f"[PackageRegistry] Skipping package entry without name or url: {entry}")
                continue
            triggers = tuple(str(t).lower() for t in entry.get("triggers", []))
            registry.register(Package(name=name, url=url, triggers=triggers))
        logger.info(f"[PackageRegistry] Registered {len(registry)} packages")
        return registry

    def register(self, package: Package) -> None:
        if package.name in self._packages:
            logger.warning(f"[PackageRegistry] Replacing registration of package '{package.name}'")
        self._packages[package.name] = package

    def get(self, name: str) -> Optional[Package]:
        return self._packages.get(name)

    def for_label(self, label: str) -> Optional[Package]:
        """First registered package whose triggers contain `label`."""
        for package in self._packages.values():
            if package.handles(label):
                return package
        return None

    def __len__(self) -> int:
        return len(self._packages)

    def __iter__(self):
        return iter(self._packages.values())
