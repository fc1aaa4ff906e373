"""
Permission feature module.

Closed role catalog, permission evaluation and the authorization dependency
that gates every privileged route.
"""
