"""Test package marker so pytest resolves ``tests`` imports deterministically."""
