"""Command line interface (`python -m bulk_reconcile.cli`)."""
