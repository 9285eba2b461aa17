"""Adjudicator — AI-assisted adjudication of security deposit insurance claims.

Adjudicator ingests claim rows exported as CSV together with each claim's
supporting documents (leases, addenda, tenant ledgers, move-out notices,
invoices), uploads the documents to Claude, and runs a two-phase review:
triage (document classification, payment verification, required document
checks) followed by charge adjudication.  Decisions are persisted per tracking
number and can be scored against historical ground truth.
"""

__version__ = "0.1.0"
