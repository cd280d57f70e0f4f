"""Account registration and sign-in service."""
