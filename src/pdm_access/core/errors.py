"""
Access Control Errors

Error taxonomy for the access-control engine:
- InvalidPath: malformed object path, rejected before evaluation
- UnknownPrivilege / UnknownRole: configuration integrity errors
- PersistenceFailure: durable write failed, in-memory change rolled back
- LockoutError: mutation would leave nobody able to modify ACLs
- PermissionDenied: generic "forbidden" for callers of check/grant/revoke
- DigestMismatch: ACL table changed since the caller last read it

Deny is not an error. Decision outcomes are returned by
authorize(), never raised.
"""


class AccessControlError(Exception):
    """Base class for all access-control errors"""


class InvalidPath(AccessControlError, ValueError):
    """Raised when an object path is malformed"""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid object path {path!r}: {reason}")


class UnknownPrivilege(AccessControlError, LookupError):
    """Raised when a privilege name is not defined"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown privilege: {name}")


class UnknownRole(AccessControlError, LookupError):
    """Raised when a role name is not defined"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown role: {name}")


class PersistenceFailure(AccessControlError):
    """Raised when the persistence layer fails to store an ACL change"""


class LockoutError(AccessControlError):
    """Raised when a mutation would remove the last Access.Modify grant"""


class PermissionDenied(AccessControlError):
    """
    Generic forbidden result.

    The message is deliberately uniform so unauthorized callers learn
    nothing about the ACL table.
    """

    def __init__(self, message: str = "permission check failed"):
        super().__init__(message)


class DigestMismatch(AccessControlError):
    """Raised when the caller's ACL digest does not match the current one"""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__("detected modified configuration - file changed by other user? Try again.")
