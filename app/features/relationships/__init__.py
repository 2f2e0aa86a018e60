"""
Idempotent assignment and removal over the RBAC join tables.
"""
