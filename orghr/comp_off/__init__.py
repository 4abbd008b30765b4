"""Comp-off: compensatory time grants credited to the leave ledger."""
