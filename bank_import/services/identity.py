"""
Request identity and account ownership checks.

The caller authenticates with ``Authorization: Bearer <token>``; the token
resolves to an owner id through the api_tokens table.
"""

import logging
from typing import Optional
from sqlalchemy.orm import Session

from ..exceptions import AuthorizationError
from ..models import ApiToken, BankAccount

logger = logging.getLogger(__name__)


def resolve_owner(authorization: Optional[str], db: Session) -> str:
    """Owner id for a bearer ``Authorization`` header value."""
    if not authorization:
        raise AuthorizationError("Authorization header is required")

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthorizationError("Authorization header must be 'Bearer <token>'")

    record = db.get(ApiToken, token.strip())
    if record is None or record.revoked:
        raise AuthorizationError("Invalid user")
    return record.owner_id


def get_owned_account(db: Session, owner_id: str, bank_account_id: str) -> BankAccount:
    """Fetch the bank account, failing unless it belongs to ``owner_id``."""
    account = (
        db.query(BankAccount)
        .filter(BankAccount.id == bank_account_id, BankAccount.owner_id == owner_id)
        .first()
    )
    if account is None:
        logger.warning(f"Account {bank_account_id} not found for owner {owner_id}")
        raise AuthorizationError("Bank account not found or access denied")
    return account
