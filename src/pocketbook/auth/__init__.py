"""Authentication and authorization.

Learn: Users authenticate with email/password and receive a JWT pair:
a short-lived access token for API calls, and a single-use refresh
token for minting the next pair. A verified access token becomes an
AuthContext, and OwnerScope uses it to confine every owned-entity
query to the caller's own rows.
"""
