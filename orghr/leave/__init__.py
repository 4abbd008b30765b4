"""Leave: policies, balance ledger and the request workflow."""
