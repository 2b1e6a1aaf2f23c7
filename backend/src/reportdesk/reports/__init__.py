"""Report submission, review state machine and queries."""
