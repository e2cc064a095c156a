"""Coordination, reconciliation and the refresh entry point."""
