"""Authentication and authorization.

Learn: Users sign up with email/password and receive JWT tokens. The
access token carries the user's role so route guards can authorize
without a database round-trip. The websocket endpoint accepts the same
access token as a ?token= query parameter.
"""
