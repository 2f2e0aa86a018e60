"""
Audit trail and aggregate statistics over the authorization state.
"""
