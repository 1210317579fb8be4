"""
Services package.

Ledger services live in submodules and are imported from there:
- ledger.services.accounts: AccountStore
- ledger.services.transactions: TransactionLedger
- ledger.services.recurring: RecurringTransactionService
- ledger.services.storage: document store port and adapters

Nothing is re-exported here so that importing the storage layer never pulls
in the services (and the audit logger) built on top of it.
"""
