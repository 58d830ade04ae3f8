"""
Tests for stepwise.

Covers decomposition, the task list state machine, the autonomous
plan/execute/verify/repair loop and the continuation controller. Shared
fakes for the generator and step executor live in helpers.py.
"""
