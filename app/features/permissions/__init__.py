"""
Permission management feature module.

Implements Role-Based Access Control (RBAC): users gain permissions through
the roles granted to the groups they belong to.
"""
