"""Utility modules: text helpers and timing."""
