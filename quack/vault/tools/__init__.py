"""
Operational tools for quack-vault.

- cli: quack-vault command-line tool (insert, query, dedup, rollback, snapshots)
"""
