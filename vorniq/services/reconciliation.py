"""Bank-to-book reconciliation suggestions.

Book entries are plain dicts with ``source``, ``id``, ``type`` (debit or
credit), ``amount`` and ``is_reconciled``. Revenue maps to credit and
expenses map to debit.
"""
from vorniq.core.config import RECONCILIATION_TOLERANCE

DEFAULT_SUGGESTION_LIMIT = 3


def book_type(source: str) -> str:
    return "credit" if source == "revenue" else "debit"


def _type_value(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


def is_candidate(bank_txn, book_entry: dict, tolerance: float = RECONCILIATION_TOLERANCE) -> bool:
    if book_entry.get("is_reconciled"):
        return False
    if _type_value(bank_txn.type) != book_entry["type"]:
        return False
    return abs(float(bank_txn.amount) - float(book_entry["amount"])) <= tolerance


def suggest_match(bank_txn, book_entries, tolerance: float = RECONCILIATION_TOLERANCE):
    """First unreconciled book entry in order within tolerance, else None."""
    if bank_txn.is_reconciled:
        return None
    for entry in book_entries:
        if is_candidate(bank_txn, entry, tolerance):
            return entry
    return None


def suggest_matches(bank_txns, book_entries, tolerance: float = RECONCILIATION_TOLERANCE,
                    limit: int = DEFAULT_SUGGESTION_LIMIT) -> list[dict]:
    """Suggest a match for each of the first ``limit`` unreconciled bank rows.

    The cap applies to the bank rows looked at, not to the suggestions
    returned, so rows past the cap get nothing even when the earlier ones
    have no match.
    """
    suggestions = []
    unreconciled = [t for t in bank_txns if not t.is_reconciled][:limit]
    for txn in unreconciled:
        entry = suggest_match(txn, book_entries, tolerance)
        if entry is None:
            continue
        suggestions.append({
            "bank_transaction_id": txn.id,
            "bank_amount": float(txn.amount),
            "book_source": entry["source"],
            "book_id": entry["id"],
            "book_amount": float(entry["amount"]),
            "difference": round(abs(float(txn.amount) - float(entry["amount"])), 2),
            "type": entry["type"],
        })
    return suggestions
