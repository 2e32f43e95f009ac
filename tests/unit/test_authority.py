"""Tests for the authority resolver."""

import pytest
from uuid import uuid4

from auditflow.core.errors import AuthorizationError, ValidationError
from auditflow.core.rbac.authority import (
    EntityAnchor,
    Principal,
    is_override,
    role_tier,
    scope_weight,
    validate_authority,
    validate_entity_creation,
)


GROUP_A = uuid4()
GROUP_B = uuid4()
COMPANY_A = uuid4()
COMPANY_B = uuid4()


def group_admin(group_id=GROUP_A):
    return Principal("groupAdmin", "group", assigned_group_id=group_id)


def company_admin(group_id=GROUP_A, company_id=COMPANY_A):
    return Principal("companyAdmin", "company", assigned_group_id=group_id, assigned_company_id=company_id)


class TestTiers:

    def test_role_tiers(self):
        assert role_tier("superAdmin") == 1
        assert role_tier("groupAdmin") == 2
        assert role_tier("companyAdmin") == role_tier("manager") == 3
        assert role_tier("complianceOfficer") == 4
        assert role_tier("auditor") == role_tier("siteManager") == 5
        assert role_tier("approver") == role_tier("problemOwner") == 6

    def test_scope_weights(self):
        assert scope_weight("system") > scope_weight("group") > scope_weight("company") > scope_weight("site")

    def test_unknown_role_rejected(self):
        with pytest.raises(AuthorizationError, match="Unknown role: janitor"):
            role_tier("janitor")

    def test_unknown_scope_rejected(self):
        with pytest.raises(AuthorizationError, match="Unknown scope level: planet"):
            scope_weight("planet")

    def test_is_override(self):
        assert is_override("admin")
        assert is_override("sysadmin")
        assert is_override("superAdmin")
        assert not is_override("groupAdmin")
        assert not is_override("janitor")
        assert not is_override(None)


class TestValidateAuthority:

    def test_admin_bypasses_everything(self):
        admin = Principal("admin", "system")
        validate_authority(admin, Principal("superAdmin", "system"))
        validate_authority(admin, Principal("janitor", "planet"))

    def test_group_admin_creates_company_admin_in_own_group(self):
        validate_authority(group_admin(), company_admin())

    def test_peer_is_rejected(self):
        with pytest.raises(AuthorizationError) as exc_info:
            validate_authority(company_admin(), Principal("manager", "company", assigned_company_id=COMPANY_A))
        assert str(exc_info.value) == (
            "A companyAdmin cannot create a user with the role manager (Peer or Higher)."
        )

    def test_higher_role_is_rejected(self):
        with pytest.raises(AuthorizationError, match="Peer or Higher"):
            validate_authority(company_admin(), group_admin())

    def test_broader_scope_is_rejected(self):
        with pytest.raises(AuthorizationError) as exc_info:
            validate_authority(company_admin(), Principal("auditor", "group", assigned_group_id=GROUP_A))
        assert str(exc_info.value) == "A company-level user cannot create a group-level user."

    def test_group_admin_cannot_reach_other_group(self):
        with pytest.raises(AuthorizationError, match="within your own group"):
            validate_authority(group_admin(), company_admin(group_id=GROUP_B))

    def test_company_admin_cannot_reach_other_company(self):
        target = Principal("auditor", "site", assigned_company_id=COMPANY_B)
        with pytest.raises(AuthorizationError, match="within your own company"):
            validate_authority(company_admin(), target)

    def test_company_admin_cross_group(self):
        target = Principal("auditor", "site", assigned_company_id=COMPANY_A, assigned_group_id=GROUP_B)
        with pytest.raises(AuthorizationError, match="Cross-group management is strictly prohibited."):
            validate_authority(company_admin(), target)

    def test_absent_target_anchor_is_not_compared(self):
        validate_authority(company_admin(), Principal("auditor", "site"))

    def test_unknown_target_role_fails_closed(self):
        with pytest.raises(AuthorizationError, match="Unknown role"):
            validate_authority(group_admin(), Principal("janitor", "site"))

    def test_accepts_user_like_objects(self):
        class FakeUser:
            role = "groupAdmin"
            scope_level = "group"
            assigned_group_id = GROUP_A
            assigned_company_id = None
            assigned_site_id = None

        principal = Principal.of(FakeUser())
        assert principal.assigned_group_id == GROUP_A
        validate_authority(FakeUser(), Principal("auditor", "site", assigned_group_id=str(GROUP_A)))


class TestValidateEntityCreation:

    def test_admin_creates_anything(self):
        validate_entity_creation(Principal("sysadmin", "system"), "company", EntityAnchor(group_id=GROUP_B))

    def test_group_admin_creates_company_in_own_group(self):
        validate_entity_creation(group_admin(), "company", EntityAnchor(group_id=GROUP_A))

    def test_group_admin_other_group(self):
        with pytest.raises(AuthorizationError) as exc_info:
            validate_entity_creation(group_admin(), "company", EntityAnchor(group_id=GROUP_B))
        assert str(exc_info.value) == "You can only create companies within your own group."

    def test_company_admin_cannot_create_company(self):
        with pytest.raises(AuthorizationError, match="Only Group Admins can create companies."):
            validate_entity_creation(company_admin(), "company", EntityAnchor(group_id=GROUP_A))

    def test_company_admin_creates_site_in_own_company(self):
        validate_entity_creation(company_admin(), "site", EntityAnchor(group_id=GROUP_A, company_id=COMPANY_A))

    def test_company_admin_site_in_other_company(self):
        with pytest.raises(AuthorizationError, match="within your own company"):
            validate_entity_creation(company_admin(), "site", EntityAnchor(company_id=COMPANY_B))

    def test_group_admin_site_in_foreign_group(self):
        with pytest.raises(AuthorizationError, match="companies within your own group"):
            validate_entity_creation(group_admin(), "site", EntityAnchor(group_id=GROUP_B, company_id=COMPANY_B))

    def test_auditor_cannot_create_site(self):
        with pytest.raises(AuthorizationError, match="Only Group or Company Admins can create sites."):
            validate_entity_creation(Principal("auditor", "site"), "site", EntityAnchor(company_id=COMPANY_A))

    def test_unsupported_entity_type(self):
        with pytest.raises(ValidationError, match="Unsupported entity type"):
            validate_entity_creation(group_admin(), "planet", EntityAnchor())
