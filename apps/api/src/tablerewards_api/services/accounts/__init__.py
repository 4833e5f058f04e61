"""Account and role service exports."""

from .account_service import (  # noqa: F401
    AccountCreationResult,
    AccountRegistration,
    AccountService,
    normalize_email,
    validate_registration,
)
from .roles import IssuedInvitation, RoleService, hash_invitation_token  # noqa: F401
