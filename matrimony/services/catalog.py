"""Injected package catalog used to resolve contact caps."""

from __future__ import annotations

from typing import Iterable, Iterator

from matrimony.config import DEFAULT_PACKAGES, Settings
from matrimony.domain.models import Package


class PackageCatalog:
    """Immutable lookup from package id to :class:`Package`."""

    def __init__(self, packages: Iterable[Package] = DEFAULT_PACKAGES) -> None:
        table: dict[str, Package] = {}
        for package in packages:
            if package.id in table:
                raise ValueError(f"Duplicate package id: {package.id}")
            table[package.id] = package
        self._packages = table

    @classmethod
    def from_settings(cls, settings: Settings) -> "PackageCatalog":
        return cls(settings.packages)

    def get(self, package_id: str | None) -> Package | None:
        if not package_id:
            return None
        return self._packages.get(package_id)

    def limits(self, package_id: str | None) -> tuple[int, int] | None:
        """Return ``(weekly_contact_cap, total_contact_cap)`` for a package."""

        package = self.get(package_id)
        if package is None:
            return None
        return package.weekly_contact_cap, package.total_contact_cap

    def all(self) -> list[Package]:
        return list(self._packages.values())

    def ids(self) -> list[str]:
        return list(self._packages)

    def __contains__(self, package_id: object) -> bool:
        return package_id in self._packages

    def __iter__(self) -> Iterator[Package]:
        return iter(self._packages.values())

    def __len__(self) -> int:
        return len(self._packages)


__all__ = ["PackageCatalog"]
