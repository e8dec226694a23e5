"""Repository watcher.

Polls the GitHub REST API for repositories created in a set of
organisations since the previous check, and records each scan run in
PostgreSQL so the next run picks up where this one left off.
"""
