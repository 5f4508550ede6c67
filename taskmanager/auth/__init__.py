"""
Authentication and authorization.

Design principles:
1. One resolver for every credential scheme (Discord bot, bearer, session)
2. Results, not exceptions, for bad credentials
3. Project-aware capabilities (owner / member) plus admin flags
4. One dependency per route in handlers
"""

from taskmanager.auth.capabilities import Capability, Requirement, matches_super_admin
from taskmanager.auth.context import Actor, AuthResult, Forbidden, Resolved, Unauthenticated
from taskmanager.auth.decoders import CredentialScheme, RequestCredentials
from taskmanager.auth.errors import (
    CredentialError,
    ExpiredCredentialError,
    FailureKind,
    MalformedCredentialError,
    SignatureMismatchError,
)
from taskmanager.auth.link_codes import (
    LinkCodeIssue,
    LinkCodeService,
    LinkCodeStatus,
    RedeemOutcome,
)
from taskmanager.auth.policies import (
    Policy,
    require,
    require_admin,
    require_auth,
    require_project_member,
    require_project_owner,
    require_super_admin,
)
from taskmanager.auth.rate_limit import RateLimiter
from taskmanager.auth.resolver import AuthResolver
from taskmanager.auth.routes import router as auth_router

__all__ = [
    # Main interface
    "AuthResolver",
    "require",
    "require_auth",
    "require_admin",
    "require_super_admin",
    "require_project_member",
    "require_project_owner",
    # Types
    "Actor",
    "AuthResult",
    "Resolved",
    "Unauthenticated",
    "Forbidden",
    "FailureKind",
    "Capability",
    "Requirement",
    "Policy",
    "CredentialScheme",
    "RequestCredentials",
    "matches_super_admin",
    # Errors
    "CredentialError",
    "MalformedCredentialError",
    "ExpiredCredentialError",
    "SignatureMismatchError",
    # Link codes
    "LinkCodeService",
    "LinkCodeIssue",
    "LinkCodeStatus",
    "RedeemOutcome",
    # Rate limiting
    "RateLimiter",
    # Router
    "auth_router",
]
