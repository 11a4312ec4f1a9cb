"""
Test Access Control Facade

Verifies authorization decisions, ACL mutations, the self-lockout guard
and write-through persistence with rollback.
"""

import pytest

from pdm_access.core.acl import AclEntry, AclStore, ChangeOp
from pdm_access.core.authorization import AccessControl
from pdm_access.core.errors import (
    DigestMismatch,
    InvalidPath,
    LockoutError,
    PermissionDenied,
    PersistenceFailure,
    UnknownRole,
)
from pdm_access.core.evaluator import Decision
from pdm_access.core.identity import StaticGroupResolver
from pdm_access.core.privileges import PrivilegeRegistry
from pdm_access.core.roles import RoleRegistry
from pdm_access.data.repos.base import InMemoryAclRepository

ROOT = "root@pam"


class FailingRepository(InMemoryAclRepository):
    """Repository whose writes fail on demand"""

    def __init__(self, entries=None):
        super().__init__(entries)
        self.fail = False

    def on_change(self, entry, op, actor=None):
        if self.fail:
            raise OSError("disk full")
        super().on_change(entry, op, actor=actor)


def make_access(entries=(), repository=None, groups=None, bootstrap=None):
    privileges = PrivilegeRegistry()
    roles = RoleRegistry(privileges)
    return AccessControl(
        privileges,
        roles,
        store=AclStore(entries),
        repository=repository,
        groups=groups,
        bootstrap_entries=bootstrap,
    )


class TestAuthorize:
    """Read-side API"""

    def setup_method(self):
        self.access = make_access([
            AclEntry.create("/", ROOT, "Administrator"),
            AclEntry.create("/resource/node1", "alice", "ResourceAdministrator"),
        ])

    def test_alice_scenario(self):
        assert self.access.authorize("alice", "/resource/node1/guest/100", "Resource.Modify") == Decision.ALLOW
        assert self.access.authorize("alice", "/system", "System.Modify") == Decision.DENY

    def test_default_deny_for_unknown_subject(self):
        for path in ["/", "/system", "/resource/node1", "/access/acl"]:
            assert self.access.authorize("mallory", path, "Resource.Audit") == Decision.DENY

    def test_bad_input_renders_as_deny(self):
        assert self.access.authorize(ROOT, "not/a/path", "System.Audit") == Decision.DENY
        assert self.access.authorize(ROOT, "/system", "System.Teleport") == Decision.DENY

    def test_check_raises_uniform_error(self):
        self.access.check("alice", "/resource/node1", "Resource.Audit")
        with pytest.raises(PermissionDenied) as excinfo:
            self.access.check("alice", "/system", "System.Audit")
        assert str(excinfo.value) == "permission check failed"

    def test_partial_check_sees_descendant_grants(self):
        assert self.access.authorize("alice", "/resource", "Resource.Audit") == Decision.DENY
        assert self.access.authorize("alice", "/resource", "Resource.Audit", partial=True) == Decision.ALLOW
        assert self.access.authorize("alice", "/system", "System.Audit", partial=True) == Decision.DENY

    def test_permissions(self):
        assert "Resource.Modify" in self.access.permissions("alice", "/resource/node1/guest/100")
        assert self.access.permissions("alice", "/system") == frozenset()

    def test_list_acl(self):
        assert len(self.access.list_acl(ROOT)) == 2
        assert [e.subject for e in self.access.list_acl(ROOT, "/resource")] == ["alice"]
        assert self.access.list_acl(ROOT, "/resource", exact=True) == []
        with pytest.raises(PermissionDenied):
            self.access.list_acl("alice")

    def test_stats(self):
        stats = self.access.get_stats()
        assert stats["acl"]["total_entries"] == 2
        assert stats["privileges"] == 11


class TestAclMutations:
    """Grant and revoke"""

    def setup_method(self):
        self.repository = FailingRepository()
        self.access = make_access(
            [AclEntry.create("/", ROOT, "Administrator")],
            repository=self.repository,
        )

    def test_grant_and_revoke(self):
        entry = self.access.grant(ROOT, "/resource/node1", "alice", "ResourceAdministrator")
        assert entry.propagate is True
        assert self.access.authorize("alice", "/resource/node1/guest/1", "Resource.Modify") == Decision.ALLOW

        removed = self.access.revoke(ROOT, "/resource/node1", "alice", "ResourceAdministrator")
        assert removed == entry
        assert self.access.authorize("alice", "/resource/node1/guest/1", "Resource.Modify") == Decision.DENY

        assert [c.op for c in self.repository.changes] == [ChangeOp.INSERT, ChangeOp.REMOVE]
        assert all(c.actor == ROOT for c in self.repository.changes)

    def test_grant_then_revoke_restores_prior_results(self):
        self.access.grant(ROOT, "/resource", "alice", "ResourceAuditor")
        queries = [
            ("alice", "/resource/node1", "Resource.Modify"),
            ("alice", "/resource/node1", "Resource.Audit"),
            ("alice", "/resource", "Resource.Audit"),
            (ROOT, "/resource/node1", "Resource.Modify"),
        ]
        before = [self.access.authorize(*q) for q in queries]

        self.access.grant(ROOT, "/resource/node1", "alice", "ResourceAdministrator")
        self.access.revoke(ROOT, "/resource/node1", "alice", "ResourceAdministrator")

        assert [self.access.authorize(*q) for q in queries] == before

    def test_grant_is_idempotent(self):
        self.access.grant(ROOT, "/system", "alice", "SystemAuditor")
        self.access.grant(ROOT, "/system", "alice", "SystemAuditor")
        assert len(self.access.list_acl(ROOT, "/system")) == 1
        assert len(self.repository.changes) == 1

    def test_revoke_missing_entry_returns_none(self):
        assert self.access.revoke(ROOT, "/system", "alice", "SystemAuditor") is None

    def test_revoke_requires_propagate_when_ambiguous(self):
        self.access.grant(ROOT, "/system", "alice", "SystemAuditor", propagate=True)
        self.access.grant(ROOT, "/system", "alice", "SystemAuditor", propagate=False)
        with pytest.raises(ValueError):
            self.access.revoke(ROOT, "/system", "alice", "SystemAuditor")
        removed = self.access.revoke(ROOT, "/system", "alice", "SystemAuditor", propagate=False)
        assert removed.propagate is False

    def test_mutations_require_access_modify(self):
        self.access.grant(ROOT, "/", "auditor", "Auditor")
        with pytest.raises(PermissionDenied):
            self.access.grant("auditor", "/system", "auditor", "SystemAdministrator")
        with pytest.raises(PermissionDenied):
            self.access.revoke("auditor", "/", "auditor", "Auditor")
        with pytest.raises(PermissionDenied):
            self.access.grant("nobody", "/system", "nobody", "SystemAdministrator")

    def test_unauthorized_caller_sees_only_permission_denied(self):
        with pytest.raises(PermissionDenied):
            self.access.grant("nobody", "bad/path", "x", "Auditor")
        with pytest.raises(PermissionDenied):
            self.access.grant("nobody", "/system", "", "Auditor")
        with pytest.raises(PermissionDenied):
            self.access.grant("nobody", "/system", "x", "Overlord")
        with pytest.raises(PermissionDenied):
            self.access.revoke("nobody", "bad/path", "x", "Auditor")
        assert len(self.access.list_acl(ROOT)) == 1

    def test_access_modify_is_checked_on_acl_path(self):
        # Administrator on a resource subtree does not reach /access/acl
        self.access.grant(ROOT, "/resource", "alice", "Administrator")
        with pytest.raises(PermissionDenied):
            self.access.grant("alice", "/resource/node1", "bob", "ResourceAuditor")

    def test_grant_validates_input(self):
        with pytest.raises(UnknownRole):
            self.access.grant(ROOT, "/system", "alice", "Overlord")
        with pytest.raises(InvalidPath):
            self.access.grant(ROOT, "system", "alice", "SystemAuditor")

    def test_digest_detects_concurrent_modification(self):
        digest = self.access.digest()
        self.access.grant(ROOT, "/system", "alice", "SystemAuditor", digest=digest)
        with pytest.raises(DigestMismatch):
            self.access.grant(ROOT, "/system", "bob", "SystemAuditor", digest=digest)
        self.access.grant(ROOT, "/system", "bob", "SystemAuditor", digest=self.access.digest())


class TestLockoutGuard:
    """Access.Modify on /access/acl must stay reachable"""

    def setup_method(self):
        self.access = make_access([AclEntry.create("/", ROOT, "Administrator")])

    def test_removing_last_access_modify_grant_fails(self):
        with pytest.raises(LockoutError):
            self.access.revoke(ROOT, "/", ROOT, "Administrator")
        assert self.access.authorize(ROOT, "/access/acl", "Access.Modify") == Decision.ALLOW

    def test_removing_one_of_two_admins_succeeds(self):
        self.access.grant(ROOT, "/access", "alice", "Administrator")
        self.access.revoke(ROOT, "/", ROOT, "Administrator")
        assert self.access.authorize("alice", "/access/acl", "Access.Modify") == Decision.ALLOW
        with pytest.raises(LockoutError):
            self.access.revoke("alice", "/access", "alice", "Administrator")

    def test_masking_grant_is_refused(self):
        with pytest.raises(LockoutError):
            self.access.grant(ROOT, "/access", ROOT, "NoAccess")
        assert len(self.access.list_acl(ROOT)) == 1

    def test_group_grant_keeps_acl_modifiable(self):
        access = make_access(
            [AclEntry.create("/", ROOT, "Administrator")],
            groups=StaticGroupResolver({"@admins": ["alice"]}),
        )
        access.grant(ROOT, "/", "@admins", "Administrator")
        access.revoke("alice", "/", ROOT, "Administrator")
        assert access.authorize("alice", "/access/acl", "Access.Modify") == Decision.ALLOW

    def test_group_without_members_does_not_count(self):
        access = make_access(
            [AclEntry.create("/", ROOT, "Administrator")],
            groups=StaticGroupResolver({"@empty": []}),
        )
        access.grant(ROOT, "/", "@empty", "Administrator")
        access.grant(ROOT, "/", "@nobody", "Administrator")
        with pytest.raises(LockoutError):
            access.revoke(ROOT, "/", ROOT, "Administrator")
        assert access.authorize(ROOT, "/access/acl", "Access.Modify") == Decision.ALLOW

    def test_group_member_masked_by_own_entry_does_not_count(self):
        access = make_access(
            [AclEntry.create("/", ROOT, "Administrator")],
            groups=StaticGroupResolver({"@admins": ["alice"]}),
        )
        access.grant(ROOT, "/", "@admins", "Administrator")
        access.grant(ROOT, "/access", "alice", "NoAccess")
        with pytest.raises(LockoutError):
            access.revoke(ROOT, "/", ROOT, "Administrator")


class TestPersistence:
    """Write-through persistence and loading"""

    def test_failed_write_rolls_back_grant(self):
        repository = FailingRepository()
        access = make_access([AclEntry.create("/", ROOT, "Administrator")], repository=repository)
        digest = access.digest()

        repository.fail = True
        with pytest.raises(PersistenceFailure):
            access.grant(ROOT, "/system", "alice", "SystemAdministrator")

        assert access.digest() == digest
        assert access.authorize("alice", "/system", "System.Modify") == Decision.DENY

    def test_failed_write_rolls_back_revoke(self):
        repository = FailingRepository()
        access = make_access([AclEntry.create("/", ROOT, "Administrator")], repository=repository)
        access.grant(ROOT, "/system", "alice", "SystemAdministrator")

        repository.fail = True
        with pytest.raises(PersistenceFailure):
            access.revoke(ROOT, "/system", "alice", "SystemAdministrator")

        assert access.authorize("alice", "/system", "System.Modify") == Decision.ALLOW

    def test_load_skips_entries_with_unknown_roles(self):
        repository = InMemoryAclRepository([
            AclEntry.create("/", ROOT, "Administrator"),
            AclEntry.create("/system", "alice", "Overlord"),
        ])
        access = make_access(repository=repository)

        results = access.load()

        assert results == {"loaded": 1, "skipped": 1, "bootstrapped": 0}
        assert access.authorize(ROOT, "/system", "System.Modify") == Decision.ALLOW
        assert access.authorize("alice", "/system", "System.Audit") == Decision.DENY

    def test_load_seeds_bootstrap_entries_when_empty(self):
        repository = InMemoryAclRepository()
        access = make_access(
            repository=repository,
            bootstrap=[AclEntry.create("/", ROOT, "Administrator")],
        )

        results = access.load()

        assert results["bootstrapped"] == 1
        assert access.authorize(ROOT, "/access/acl", "Access.Modify") == Decision.ALLOW
        assert len(repository.load_all()) == 1
        assert repository.changes[0].actor == "bootstrap"

    def test_load_does_not_seed_over_existing_table(self):
        repository = InMemoryAclRepository([AclEntry.create("/", "alice", "Administrator")])
        access = make_access(
            repository=repository,
            bootstrap=[AclEntry.create("/", ROOT, "Administrator")],
        )

        results = access.load()

        assert results["bootstrapped"] == 0
        assert access.authorize(ROOT, "/", "System.Audit") == Decision.DENY

    def test_load_does_not_seed_when_every_entry_was_skipped(self):
        repository = InMemoryAclRepository([AclEntry.create("/", "alice", "CustomAdmin")])
        access = make_access(
            repository=repository,
            bootstrap=[AclEntry.create("/", ROOT, "Administrator")],
        )

        results = access.load()

        assert results == {"loaded": 0, "skipped": 1, "bootstrapped": 0}
        assert repository.load_all() == [AclEntry.create("/", "alice", "CustomAdmin")]
        assert repository.changes == []
        assert access.authorize(ROOT, "/access/acl", "Access.Modify") == Decision.DENY
