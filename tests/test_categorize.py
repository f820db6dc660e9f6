from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from bank_import.models import CategoryRule, Transaction, TransactionCategory
from bank_import.services.categorize import (
    assign_category, categorize_transaction, load_active_rules, match_category,
)

from conftest import ACCOUNT_ID, GROCERIES, HEALTH, OTHER_OWNER, OWNER, PHARMACY
from helpers import make_row


def _rule(pattern, category_id, priority=0):
    return SimpleNamespace(pattern=pattern, category_id=category_id, priority=priority)


def _add_transaction(db, description="COMPRA EN FARMACIA EL REY"):
    txn = Transaction(
        owner_id=OWNER,
        bank_account_id=ACCOUNT_ID,
        posted_at=date(2025, 1, 12),
        description=description,
        amount=Decimal("-18.75"),
        currency="PAB",
        external_fingerprint=f"bg_{description[:8]}",
        raw={},
    )
    db.add(txn)
    db.commit()
    return txn


def test_first_matching_rule_wins():
    rules = [_rule("farmacia", PHARMACY, 10), _rule("rey", GROCERIES, 5)]
    row = make_row(description="COMPRA EN FARMACIA EL REY", merchant="Farmacia El Rey")
    assert match_category(row, rules) == PHARMACY


def test_matching_is_case_and_accent_insensitive():
    row = make_row(description="COMPRA EN SUPER 99", merchant="Super")
    assert match_category(row, [_rule("Súper", GROCERIES)]) == GROCERIES


def test_merchant_name_is_preferred_over_description():
    row = make_row(description="POS 4621 XX", merchant="Farmacia Arrocha")
    assert match_category(row, [_rule("pos", HEALTH, 10), _rule("arrocha", PHARMACY)]) == PHARMACY


def test_description_used_without_merchant():
    row = make_row(description="PAGO A CABLE ONDA", merchant=None)
    assert match_category(row, [_rule("cable", HEALTH)]) == HEALTH


def test_blank_patterns_never_match():
    row = make_row(description="ANYTHING")
    assert match_category(row, [_rule("  ", HEALTH)]) is None
    assert match_category(row, []) is None


def test_load_active_rules_orders_and_scopes(db):
    db.add(CategoryRule(id="rule-inactive", owner_id=OWNER, pattern="farmacia", category_id=HEALTH,
                        priority=99, active=False))
    db.commit()

    rules = load_active_rules(db, OWNER)

    assert [r.id for r in rules] == ["rule-blank", "rule-farmacia", "rule-super"]
    assert all(r.owner_id == OWNER for r in rules)
    assert [r.id for r in load_active_rules(db, OTHER_OWNER)] == ["rule-other"]


def test_categorize_transaction_stores_assignment(db):
    txn = _add_transaction(db)
    row = make_row(description=txn.description, merchant="Farmacia El Rey")

    category_id = categorize_transaction(db, txn.id, row, load_active_rules(db, OWNER))
    db.commit()

    assert category_id == PHARMACY
    assert db.get(TransactionCategory, txn.id).category_id == PHARMACY


def test_categorize_transaction_without_match(db):
    txn = _add_transaction(db, description="PAGO A CABLE ONDA")
    row = make_row(description=txn.description, merchant="Cable Onda")

    assert categorize_transaction(db, txn.id, row, load_active_rules(db, OWNER)) is None
    assert db.get(TransactionCategory, txn.id) is None


def test_assign_category_replaces_existing(db):
    txn = _add_transaction(db)
    assign_category(db, txn.id, HEALTH)
    db.commit()

    assign_category(db, txn.id, PHARMACY)
    db.commit()

    links = db.query(TransactionCategory).filter_by(transaction_id=txn.id).all()
    assert [link.category_id for link in links] == [PHARMACY]
