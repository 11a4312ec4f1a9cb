"""
Access Control Configuration Schema

Defines the configuration structure for the access-control engine.
All configuration can be specified via access.yaml or environment variables.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class StorageConfig:
    """Configuration for ACL persistence"""
    type: str = "json"  # "json" or "memory"
    path: str = "./data/access"


@dataclass
class PrivilegeConfig:
    """
    An additional privilege, or new supersets for a built-in one.

    implied_by lists existing privileges that become supersets of this one,
    e.g. Resource.Guest.Modify implied by Resource.Modify.
    """
    name: str
    namespace: str = ""
    description: str = ""
    implies: List[str] = field(default_factory=list)
    implied_by: List[str] = field(default_factory=list)


@dataclass
class RoleConfig:
    """An additional role composed of known privileges"""
    name: str
    privileges: List[str] = field(default_factory=list)
    description: str = ""


@dataclass
class AclEntryConfig:
    """ACL entry seeded when the persisted ACL table is empty"""
    path: str
    subject: str
    role: str
    propagate: bool = True


@dataclass
class AccessConfig:
    """
    Central configuration for the access-control engine.

    Example access.yaml:
    ```yaml
    storage:
      type: json
      path: /etc/proxmox-datacenter-manager/access

    cache_enabled: true

    privileges:
      - name: Resource.Guest.Modify
        namespace: /resource
        implied_by: [Resource.Modify]

    roles:
      - name: GuestOperator
        privileges: [Resource.Audit, Resource.PowerMgmt]

    groups:
      "@admins": [alice@pdm, bob@ldap]

    bootstrap_acl:
      - path: /
        subject: root@pam
        role: Administrator
    ```
    """
    storage: StorageConfig = field(default_factory=StorageConfig)
    cache_enabled: bool = False

    privileges: List[PrivilegeConfig] = field(default_factory=list)
    roles: List[RoleConfig] = field(default_factory=list)
    groups: Dict[str, List[str]] = field(default_factory=dict)
    bootstrap_acl: List[AclEntryConfig] = field(default_factory=list)

    # Working directory (defaults to current directory)
    working_dir: Path = field(default_factory=Path.cwd)

    def storage_path(self) -> Path:
        """Storage path, resolved against the working directory"""
        path = Path(self.storage.path)
        if not path.is_absolute():
            path = self.working_dir / path
        return path

    def get_role(self, name: str) -> Optional[RoleConfig]:
        for role in self.roles:
            if role.name == name:
                return role
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccessConfig":
        """Create AccessConfig from dictionary (e.g., parsed YAML)"""
        # Parse storage config
        storage_data = data.get("storage", {}) or {}
        storage_config = StorageConfig(
            type=storage_data.get("type", "json"),
            path=str(storage_data.get("path", "./data/access")),
        )

        # Parse privileges
        privileges = []
        for privilege_data in data.get("privileges", []) or []:
            if isinstance(privilege_data, str):
                privileges.append(PrivilegeConfig(name=privilege_data))
            elif isinstance(privilege_data, dict):
                privileges.append(PrivilegeConfig(
                    name=privilege_data["name"],
                    namespace=privilege_data.get("namespace", ""),
                    description=privilege_data.get("description", ""),
                    implies=list(privilege_data.get("implies", [])),
                    implied_by=list(privilege_data.get("implied_by", [])),
                ))

        # Parse roles (list form or name -> privileges mapping)
        roles = []
        roles_data = data.get("roles", []) or []
        if isinstance(roles_data, dict):
            roles_data = [
                {"name": name, **(spec if isinstance(spec, dict) else {"privileges": spec})}
                for name, spec in roles_data.items()
            ]
        for role_data in roles_data:
            roles.append(RoleConfig(
                name=role_data["name"],
                privileges=list(role_data.get("privileges", [])),
                description=role_data.get("description", ""),
            ))

        # Parse groups
        groups = {
            group: list(members or [])
            for group, members in (data.get("groups", {}) or {}).items()
        }

        # Parse bootstrap ACL
        bootstrap_acl = []
        for entry_data in data.get("bootstrap_acl", []) or []:
            bootstrap_acl.append(AclEntryConfig(
                path=entry_data["path"],
                subject=entry_data["subject"],
                role=entry_data["role"],
                propagate=entry_data.get("propagate", True),
            ))

        return cls(
            storage=storage_config,
            cache_enabled=bool(data.get("cache_enabled", False)),
            privileges=privileges,
            roles=roles,
            groups=groups,
            bootstrap_acl=bootstrap_acl,
            working_dir=Path(data.get("working_dir", ".")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary (for serialization)"""
        return {
            "storage": {
                "type": self.storage.type,
                "path": self.storage.path,
            },
            "cache_enabled": self.cache_enabled,
            "privileges": [
                {
                    "name": p.name,
                    "namespace": p.namespace,
                    "description": p.description,
                    "implies": list(p.implies),
                    "implied_by": list(p.implied_by),
                }
                for p in self.privileges
            ],
            "roles": [
                {"name": r.name, "privileges": list(r.privileges), "description": r.description}
                for r in self.roles
            ],
            "groups": {group: list(members) for group, members in self.groups.items()},
            "bootstrap_acl": [
                {"path": e.path, "subject": e.subject, "role": e.role, "propagate": e.propagate}
                for e in self.bootstrap_acl
            ],
            "working_dir": str(self.working_dir),
        }
