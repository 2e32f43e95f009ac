"""Data-visibility predicates derived from a principal's scope anchor.

The filter is advisory: callers merge it into their own queries with
``ScopeFilter.apply`` or check single records with ``ScopeFilter.allows``.
"""

import uuid
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, Optional

from sqlalchemy import false, or_, true
from sqlalchemy.orm import Session

from auditflow.db.models import Company, Site
from .roles import ScopeLevel


def _as_uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _id_set(values: Iterable[Any]) -> FrozenSet[uuid.UUID]:
    return frozenset(_as_uuid(v) for v in values if v is not None)


@dataclass(frozen=True)
class ScopeFilter:
    """Visible subtree: everything, or the union of the listed nodes."""

    match_all: bool = False
    group_ids: FrozenSet[uuid.UUID] = frozenset()
    company_ids: FrozenSet[uuid.UUID] = frozenset()
    site_ids: FrozenSet[uuid.UUID] = frozenset()

    @classmethod
    def everything(cls) -> "ScopeFilter":
        return cls(match_all=True)

    @classmethod
    def nothing(cls) -> "ScopeFilter":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not (self.match_all or self.group_ids or self.company_ids or self.site_ids)

    def clause(self, model):
        """SQL predicate over ``model.scope_columns``."""
        if self.match_all:
            return true()

        columns = getattr(model, "scope_columns", {})
        conditions = []
        for level, ids in (
            ("group", self.group_ids),
            ("company", self.company_ids),
            ("site", self.site_ids),
        ):
            column_name = columns.get(level)
            if column_name and ids:
                conditions.append(getattr(model, column_name).in_(sorted(ids)))

        if not conditions:
            return false()
        return or_(*conditions)

    def apply(self, query, model):
        return query.filter(self.clause(model))

    def allows(
        self,
        group_id: Optional[Any] = None,
        company_id: Optional[Any] = None,
        site_id: Optional[Any] = None,
    ) -> bool:
        if self.match_all:
            return True
        return (
            (group_id is not None and _as_uuid(group_id) in self.group_ids)
            or (company_id is not None and _as_uuid(company_id) in self.company_ids)
            or (site_id is not None and _as_uuid(site_id) in self.site_ids)
        )


def compute_scope_filter(db: Session, principal) -> ScopeFilter:
    """
    Resolve the subtree visible to ``principal``.

    Performs read-only lookups of the Companies and Sites under the anchor.
    A missing anchor or an unknown scope level yields ``ScopeFilter.nothing()``.
    """
    level = principal.scope_level

    if level == ScopeLevel.SYSTEM:
        return ScopeFilter.everything()

    if level == ScopeLevel.GROUP and principal.assigned_group_id:
        group_id = _as_uuid(principal.assigned_group_id)
        company_ids = _id_set(
            row[0] for row in db.query(Company.id).filter(Company.group_id == group_id)
        )
        site_ids = frozenset()
        if company_ids:
            site_ids = _id_set(
                row[0]
                for row in db.query(Site.id).filter(Site.company_id.in_(sorted(company_ids)))
            )
        return ScopeFilter(
            group_ids=frozenset([group_id]),
            company_ids=company_ids,
            site_ids=site_ids,
        )

    if level == ScopeLevel.COMPANY and principal.assigned_company_id:
        company_id = _as_uuid(principal.assigned_company_id)
        site_ids = _id_set(
            row[0] for row in db.query(Site.id).filter(Site.company_id == company_id)
        )
        return ScopeFilter(company_ids=frozenset([company_id]), site_ids=site_ids)

    if level == ScopeLevel.SITE and principal.assigned_site_id:
        return ScopeFilter(site_ids=frozenset([_as_uuid(principal.assigned_site_id)]))

    return ScopeFilter.nothing()
