"""
Access Control Configuration Loader

Reads access.yaml, substitutes environment variables and builds an
AccessConfig.

Environment Variable Interpolation:
- ${VAR_NAME} - Required variable, raises error if not set
- ${VAR_NAME:-default} - Optional variable with default value

Example:
```yaml
storage:
  type: json
  path: "${PDM_ACCESS_DIR:-/etc/proxmox-datacenter-manager/access}"
bootstrap_acl:
  - path: /
    subject: "${PDM_BOOTSTRAP_ADMIN}"
    role: Administrator
```
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

import yaml

from .schema import AccessConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "access.yaml"

# Explicit config file location, checked before any search path
CONFIG_ENV_VAR = "PDM_ACCESS_CONFIG"

SYSTEM_CONFIG_DIR = Path("/etc/proxmox-datacenter-manager")

ENV_VAR_PATTERN = re.compile(r'\$\{([^}:]+)(?::-([^}]*))?\}')


def _expand(text: str, environ: Mapping[str, str]) -> str:
    def lookup(match):
        name, default = match.group(1), match.group(2)
        if name in environ:
            return environ[name]
        if default is not None:
            return default
        raise KeyError(
            f"Access configuration references ${{{name}}}, which is not set; "
            f"export it or write ${{{name}:-default}}"
        )

    return ENV_VAR_PATTERN.sub(lookup, text)


def interpolate_env_vars(value: Any, environ: Optional[Mapping[str, str]] = None) -> Any:
    """
    Substitute ${VAR} / ${VAR:-default} in every string of a parsed config.

    Args:
        value: Parsed YAML (mapping, list, string or scalar)
        environ: Variables to read (default: os.environ)

    Raises:
        KeyError: a required variable is not set
    """
    if environ is None:
        environ = os.environ

    if isinstance(value, str):
        return _expand(value, environ)
    if isinstance(value, dict):
        return {key: interpolate_env_vars(item, environ) for key, item in value.items()}
    if isinstance(value, list):
        return [interpolate_env_vars(item, environ) for item in value]
    return value


def load_config_from_file(
    config_path: Union[str, Path],
    interpolate: bool = True
) -> AccessConfig:
    """
    Load access configuration from a YAML file.

    Relative storage paths resolve against the file's directory unless the
    file sets working_dir itself.

    Raises:
        FileNotFoundError: If config file doesn't exist
        KeyError: If required environment variable is not set
        ValueError: If the top level is not a mapping
        yaml.YAMLError: If YAML is malformed
    """
    config_path = Path(config_path)
    if not config_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading access configuration from {config_path}")
    raw_config = yaml.safe_load(config_path.read_text()) or {}
    if not isinstance(raw_config, dict):
        raise ValueError(f"{config_path}: expected a mapping at the top level, got {type(raw_config).__name__}")

    if interpolate:
        try:
            raw_config = interpolate_env_vars(raw_config)
        except KeyError as e:
            logger.error(f"Configuration error in {config_path}: {e}")
            raise

    raw_config.setdefault("working_dir", str(config_path.parent.absolute()))
    return AccessConfig.from_dict(raw_config)


def config_search_paths(working_dir: Optional[Union[str, Path]] = None) -> List[Path]:
    """
    Candidate locations for access.yaml, in priority order:

    1. $PDM_ACCESS_CONFIG
    2. working_dir/access.yaml, working_dir/config/access.yaml
    3. ./access.yaml, ./config/access.yaml
    4. /etc/proxmox-datacenter-manager/access.yaml
    """
    paths = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        paths.append(Path(explicit))

    bases = [Path(working_dir)] if working_dir else []
    bases.append(Path.cwd())
    for base in bases:
        paths.append(base / CONFIG_FILENAME)
        paths.append(base / "config" / CONFIG_FILENAME)

    paths.append(SYSTEM_CONFIG_DIR / CONFIG_FILENAME)
    return paths


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    working_dir: Optional[Union[str, Path]] = None,
) -> AccessConfig:
    """
    Load access configuration from config_path, or the first existing
    search path; fall back to built-in defaults (no bootstrap entries).
    """
    if config_path:
        return load_config_from_file(config_path)

    for path in config_search_paths(working_dir):
        if path.is_file():
            logger.info(f"Found configuration at {path}")
            return load_config_from_file(path)

    logger.info(f"No {CONFIG_FILENAME} found, using default configuration")
    return AccessConfig(working_dir=Path(working_dir) if working_dir else Path.cwd())


def create_default_config(
    output_path: Optional[Union[str, Path]] = None,
    bootstrap_admin: str = "root@pam",
) -> Path:
    """
    Create a default access.yaml configuration file.

    Args:
        output_path: Where to write the config (default: ./access.yaml)
        bootstrap_admin: Subject that receives Administrator on / when the
            ACL table is empty

    Returns:
        Path to created configuration file
    """
    output_path = Path(output_path) if output_path else Path(CONFIG_FILENAME)

    default_config = f"""# Access control configuration
# Environment variables can be used: ${{VAR_NAME}} or ${{VAR_NAME:-default}}

storage:
  type: "json"
  path: "${{PDM_ACCESS_DIR:-./data/access}}"

# Memoize effective privileges per (subject, path) until the ACL changes
cache_enabled: false

# Extra privileges and supersets
# privileges:
#   - name: "Resource.Guest.Modify"
#     namespace: "/resource"
#     implied_by: ["Resource.Modify"]

# Extra roles
# roles:
#   - name: "GuestOperator"
#     privileges: ["Resource.Audit", "Resource.PowerMgmt"]

# Group membership
groups: {{}}

# Seeded only when no ACL entries are persisted yet
bootstrap_acl:
  - path: "/"
    subject: "{bootstrap_admin}"
    role: "Administrator"
"""

    with open(output_path, 'w') as f:
        f.write(default_config)

    logger.info(f"Created default configuration at {output_path}")
    return output_path
