"""Repository for the savings ledger."""

from savings_reconciliation.models import LedgerTransaction
from savings_reconciliation.services.supabase_client import get_supabase

TRANSACTIONS_TABLE = "savings_transactions"


def insert_transaction(transaction: LedgerTransaction) -> None:
    """Insert one ledger transaction.

    Raises the client's API error on failure, including a unique-violation
    when the reference id has already been posted.
    """
    supabase = get_supabase()
    supabase.table(TRANSACTIONS_TABLE).insert(
        {
            "user_id": transaction.user_id,
            "transaction_type": transaction.transaction_type,
            "amount": str(transaction.amount),
            "description": transaction.description,
            "transaction_date": transaction.transaction_date.isoformat(),
            "status": transaction.status,
            "reference_id": transaction.reference_id,
            "payment_method": transaction.payment_method,
        }
    ).execute()
