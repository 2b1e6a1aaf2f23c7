"""Accounts, roles and the admin promotion workflow."""
