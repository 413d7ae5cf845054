"""Catalog mirroring helpers."""

from __future__ import annotations

from matrimony.domain.models import CatalogSyncResult, Package
from matrimony.logging import logger
from matrimony.services.catalog import PackageCatalog
from matrimony.services.exceptions import StoreError
from matrimony.store.base import QuotaStore


async def sync_package_catalog(store: QuotaStore, catalog: PackageCatalog) -> CatalogSyncResult:
    """Copy the in-code catalog into the store's ``packages`` mirror.

    The quota engine never reads the mirror, so a failed sync only affects
    tooling that lists packages from the database.
    """

    try:
        count = await store.upsert_packages(catalog.all())
    except StoreError as exc:
        logger.error("package_catalog_sync_failed", error=str(exc))
        return CatalogSyncResult(success=False, error=str(exc))
    logger.info("package_catalog_synced", count=count)
    return CatalogSyncResult(success=True, count=count)


async def fetch_published_packages(store: QuotaStore, catalog: PackageCatalog) -> list[Package]:
    """Mirrored packages, or the in-code catalog when the mirror is empty or down."""

    try:
        packages = await store.list_packages()
    except StoreError as exc:
        logger.warning("package_mirror_unavailable", error=str(exc))
        return catalog.all()
    return packages or catalog.all()


__all__ = ["sync_package_catalog", "fetch_published_packages"]
