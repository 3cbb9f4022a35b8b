"""
Category Resolver

Finds category names in a file that the user doesn't have yet, and
turns the user's decision for each of them into an override map the
row validator can use.

CRITICAL: All categories are created BEFORE any entry is committed.
If a creation fails the whole import is aborted; nothing is committed.
"""

from typing import Optional
from uuid import UUID

from ledger_engine.audit import AuditLogger
from ledger_engine.models.ledger import (
    Category,
    CategoryResolution,
    CategoryType,
    ColumnMapping,
    LedgerField,
    ResolutionAction,
    SessionContext,
)
from ledger_engine.services.storage import LedgerRepository


class UnresolvedCategoryError(ValueError):
    """A resolution is missing or incomplete for an unknown category."""

    def __init__(self, names: list[str]):
        self.names = names
        super().__init__(f"Categories without a complete resolution: {', '.join(names)}")


class CategoryResolutionError(Exception):
    """Creating a category failed. The import must be aborted."""

    def __init__(self, name: str, message: str):
        self.name = name
        super().__init__(f'Could not create category "{name}": {message}')


def find_unknown_categories(
    rows: list[list[str]],
    mapping: ColumnMapping,
    categories: list[Category],
) -> list[str]:
    """
    Distinct category names in the file that match no known category.

    Matching is case-insensitive. The first spelling seen is kept.
    Returns an empty list when no column is mapped to category.
    """
    index = mapping.get(LedgerField.CATEGORY)
    if index is None:
        return []

    known = {c.name.strip().lower() for c in categories}
    unknown: dict[str, str] = {}
    for row in rows:
        if index >= len(row):
            continue
        name = row[index].strip()
        key = name.lower()
        if name and key not in known and key not in unknown:
            unknown[key] = name

    return sorted(unknown.values())


def default_resolutions(
    unknown: list[str],
    default_type: CategoryType = CategoryType.EXPENSE,
) -> dict[str, CategoryResolution]:
    """Propose creating every unknown category under its own name."""
    return {
        name: CategoryResolution(
            action=ResolutionAction.CREATE,
            new_name=name,
            new_type=default_type,
        )
        for name in unknown
    }


def _lookup(
    resolutions: dict[str, CategoryResolution],
    name: str,
) -> Optional[CategoryResolution]:
    if name in resolutions:
        return resolutions[name]
    key = name.lower()
    for candidate, resolution in resolutions.items():
        if candidate.lower() == key:
            return resolution
    return None


def unresolved_categories(
    unknown: list[str],
    resolutions: dict[str, CategoryResolution],
) -> list[str]:
    """Unknown names whose resolution is missing or incomplete."""
    pending = []
    for name in unknown:
        resolution = _lookup(resolutions, name)
        if resolution is None or not resolution.is_complete:
            pending.append(name)
    return pending


def resolutions_complete(
    unknown: list[str],
    resolutions: dict[str, CategoryResolution],
) -> bool:
    return not unresolved_categories(unknown, resolutions)


class CategoryResolver:
    """
    Applies category resolutions against the repository.

    Produces a map from lowercased category name to category ID
    (None for skipped names).
    """

    def __init__(
        self,
        repository: LedgerRepository,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._audit = audit_logger or AuditLogger()

    async def resolve(
        self,
        session: SessionContext,
        unknown: list[str],
        resolutions: dict[str, CategoryResolution],
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, Optional[str]]:
        """
        Turn resolutions into overrides, creating categories as needed.

        Raises:
            UnresolvedCategoryError: If any unknown name lacks a complete resolution
            CategoryResolutionError: If creating a category fails
        """
        pending = unresolved_categories(unknown, resolutions)
        if pending:
            raise UnresolvedCategoryError(pending)

        overrides: dict[str, Optional[str]] = {}
        for name in unknown:
            resolution = _lookup(resolutions, name)
            key = name.lower()

            if resolution.action is ResolutionAction.EXISTING:
                overrides[key] = resolution.category_id

            elif resolution.action is ResolutionAction.CREATE:
                try:
                    category = await self._repository.create_category(
                        session,
                        resolution.new_name.strip(),
                        resolution.new_type,
                    )
                except Exception as e:
                    await self._audit.log_category_resolution_failed(
                        name=name,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                    raise CategoryResolutionError(name, str(e)) from e

                await self._audit.log_category_created(
                    category_id=category.id,
                    name=category.name,
                    category_type=category.type.value,
                    correlation_id=correlation_id,
                )
                overrides[key] = category.id

            else:
                overrides[key] = None

        return overrides
