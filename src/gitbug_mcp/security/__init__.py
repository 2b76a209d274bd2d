"""Checks applied to every tool call: validation, rate limits, auditing."""
