"""Subcommands for the molert CLI. Each module exposes register() and execute()."""
