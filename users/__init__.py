"""
User account service.

Manages user accounts, their profiles, and their preferences. The lifecycle
operations live in :mod:`users.accounts`; :mod:`users.routes` exposes them
over HTTP to callers holding a bearer token from the identity service.
"""
