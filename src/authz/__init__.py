"""Workspace and board authorization.

Resolves a principal's effective role, normalizes persisted workspace
settings (including the legacy per-visibility shape), and evaluates
whether an action is allowed, with a user-facing reason.

Pure and synchronous -- no I/O in the resolvers or the evaluator.
"""
