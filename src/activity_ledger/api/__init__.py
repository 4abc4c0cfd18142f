"""HTTP surface for the activity ledger."""
