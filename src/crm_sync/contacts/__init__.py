"""Contact reconciliation module -- schemas, engine, service, and sync tracking.

Provides Pydantic schemas (store records, comparisons, request/response
envelopes, sync operations), the pure reconciliation engine, the
ReconciliationService that fetches both stores and builds responses, and the
email-verification sync with its operation log.
"""
