"""
Rule-based categorization for imported transactions.

Rules are owner-defined (pattern, category, priority) tuples. Only active
rules are used, tried from highest to lowest priority; the first rule whose
pattern appears in the merchant name (or the description when there is no
merchant) wins and no further rules are tried.

Matching is case- and accent-insensitive substring containment.
Internal transfers are never categorized; the import orchestrator skips them
before calling in here.
"""

import logging
from typing import Optional
from sqlalchemy.orm import Session

from ..models import CategoryRule, TransactionCategory
from .text_utils import fold

logger = logging.getLogger(__name__)


def load_active_rules(db: Session, owner_id: str) -> list:
    """Active rules for an owner, highest priority first."""
    return (
        db.query(CategoryRule)
        .filter(CategoryRule.owner_id == owner_id, CategoryRule.active.is_(True))
        .order_by(CategoryRule.priority.desc(), CategoryRule.created_at, CategoryRule.id)
        .all()
    )


def match_category(row, rules) -> Optional[str]:
    """Return the category id of the first matching rule, or None."""
    search_text = row.match_text
    for rule in rules:
        pattern = fold(rule.pattern).strip()
        if not pattern:
            continue
        if pattern in search_text:
            return rule.category_id
    return None


def assign_category(db: Session, transaction_id: str, category_id: str) -> TransactionCategory:
    """Replace the transaction's category assignment (at most one per transaction)."""
    link = db.get(TransactionCategory, transaction_id)
    if link is None:
        link = TransactionCategory(transaction_id=transaction_id, category_id=category_id)
        db.add(link)
    else:
        link.category_id = category_id
    db.flush()
    return link


def categorize_transaction(db: Session, transaction_id: str, row, rules) -> Optional[str]:
    """Match ``row`` against ``rules`` and store the result for the transaction.

    Returns the assigned category id, or None when no rule matched.
    """
    category_id = match_category(row, rules)
    if category_id is None:
        logger.debug(f"No rule match: {row.description}")
        return None

    assign_category(db, transaction_id, category_id)
    logger.debug(f"Rule match: {row.description} → {category_id}")
    return category_id
