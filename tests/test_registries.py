"""
Tests for the privilege and role registries.
"""

import pytest

from pdm_access.core.errors import UnknownPrivilege, UnknownRole
from pdm_access.core.privileges import (
    ACCESS_AUDIT,
    ACCESS_MODIFY,
    RESOURCE_AUDIT,
    RESOURCE_MODIFY,
    SYS_AUDIT,
    SYS_MODIFY,
    Privilege,
    PrivilegeRegistry,
)
from pdm_access.core.roles import RoleRegistry


class TestPrivilegeRegistry:
    """Static privilege catalogue"""

    def setup_method(self):
        self.registry = PrivilegeRegistry()

    def test_builtin_privileges(self):
        assert len(self.registry) == 11
        assert self.registry.lookup(SYS_MODIFY).namespace == "/system"
        assert self.registry.namespace_of(RESOURCE_MODIFY) == "/resource"
        assert self.registry.namespace_of(self.registry.lookup(ACCESS_MODIFY)) == "/access"

    def test_unknown_privilege(self):
        with pytest.raises(UnknownPrivilege):
            self.registry.lookup("Resource.Teleport")
        with pytest.raises(UnknownPrivilege):
            self.registry.satisfies("Resource.Teleport")

    def test_no_supersets_by_default(self):
        for privilege in self.registry:
            assert self.registry.satisfies(privilege.name) == frozenset({privilege.name})

    def test_superset_extension(self):
        registry = PrivilegeRegistry.with_extensions([
            Privilege("Resource.Guest.Modify", "/resource"),
            Privilege(RESOURCE_MODIFY, "", implies=frozenset({"Resource.Guest.Modify"})),
        ])
        assert registry.satisfies(RESOURCE_MODIFY) == {RESOURCE_MODIFY, "Resource.Guest.Modify"}
        # Merged into the built-in definition
        assert registry.namespace_of(RESOURCE_MODIFY) == "/resource"
        assert registry.satisfies("Resource.Guest.Modify") == {"Resource.Guest.Modify"}

    def test_superset_is_transitive(self):
        registry = PrivilegeRegistry.with_extensions([
            Privilege("Resource.Guest.Config", "/resource"),
            Privilege("Resource.Guest.Modify", "/resource", implies=frozenset({"Resource.Guest.Config"})),
            Privilege(RESOURCE_MODIFY, "", implies=frozenset({"Resource.Guest.Modify"})),
        ])
        assert "Resource.Guest.Config" in registry.satisfies(RESOURCE_MODIFY)

    def test_superset_of_undefined_privilege_rejected(self):
        with pytest.raises(UnknownPrivilege):
            PrivilegeRegistry([Privilege(RESOURCE_MODIFY, "/resource", implies=frozenset({"Nope"}))])

    def test_duplicate_definition_rejected(self):
        with pytest.raises(ValueError):
            PrivilegeRegistry([Privilege(SYS_AUDIT, "/system"), Privilege(SYS_AUDIT, "/system")])


class TestRoleRegistry:
    """Static role catalogue"""

    def setup_method(self):
        self.privileges = PrivilegeRegistry()
        self.roles = RoleRegistry(self.privileges)

    def test_administrator_has_everything(self):
        assert self.roles.privileges_of("Administrator") == self.privileges.names()
        assert ACCESS_MODIFY in self.roles.privileges_of("Administrator")

    def test_auditor_has_all_audit_privileges(self):
        assert self.roles.privileges_of("Auditor") == {SYS_AUDIT, RESOURCE_AUDIT, ACCESS_AUDIT}

    def test_namespace_roles(self):
        assert self.roles.privileges_of("SystemAdministrator") == {SYS_AUDIT, SYS_MODIFY}
        assert self.roles.privileges_of("SystemAuditor") == {SYS_AUDIT}
        assert self.roles.privileges_of("ResourceAuditor") == {RESOURCE_AUDIT}
        assert self.roles.privileges_of("AccessAuditor") == {ACCESS_AUDIT}

        resource_admin = self.roles.privileges_of("ResourceAdministrator")
        assert RESOURCE_MODIFY in resource_admin
        assert all(self.privileges.namespace_of(p) == "/resource" for p in resource_admin)
        assert ACCESS_MODIFY not in resource_admin

    def test_no_access_role_is_empty(self):
        assert self.roles.privileges_of("NoAccess") == frozenset()

    def test_unknown_role(self):
        with pytest.raises(UnknownRole):
            self.roles.lookup("Overlord")

    def test_extra_role(self):
        roles = RoleRegistry(self.privileges, extra_roles={"GuestOperator": [RESOURCE_AUDIT]})
        assert roles.lookup("GuestOperator").grants(RESOURCE_AUDIT)
        assert not roles.lookup("GuestOperator").grants(RESOURCE_MODIFY)

    def test_extra_role_with_unknown_privilege_rejected(self):
        with pytest.raises(UnknownPrivilege):
            RoleRegistry(self.privileges, extra_roles={"Broken": ["Resource.Teleport"]})

    def test_builtin_role_cannot_be_redefined(self):
        with pytest.raises(ValueError):
            RoleRegistry(self.privileges, extra_roles={"Administrator": [SYS_AUDIT]})

    def test_roles_expand_supersets(self):
        privileges = PrivilegeRegistry.with_extensions([
            Privilege("Resource.Guest.Modify", "/resource"),
            Privilege(RESOURCE_MODIFY, "", implies=frozenset({"Resource.Guest.Modify"})),
        ])
        roles = RoleRegistry(privileges)
        assert "Resource.Guest.Modify" in roles.privileges_of("ResourceAdministrator")
        assert roles.lookup("ResourceAdministrator").privileges == frozenset(
            p.name for p in privileges.in_namespace("/resource")
        )
