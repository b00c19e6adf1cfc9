"""Organization branding lookup."""

from functools import lru_cache
from typing import Protocol

from theme_deployer.models.branding import Organization


class BrandingStore(Protocol):
    """Read-only source of organizations and their branding."""

    async def get(self, organization_id: str) -> Organization | None:
        ...


class InMemoryBrandingStore:
    """Organizations held in memory, keyed by id."""

    def __init__(self, organizations: list[Organization] | None = None):
        self._organizations = {org.id: org for org in organizations or []}

    async def get(self, organization_id: str) -> Organization | None:
        org = self._organizations.get(organization_id)
        return org.model_copy(deep=True) if org else None

    async def save(self, organization: Organization) -> Organization:
        self._organizations[organization.id] = organization.model_copy(deep=True)
        return organization


@lru_cache
def get_branding_store() -> InMemoryBrandingStore:
    """Get the branding store singleton."""
    return InMemoryBrandingStore()
