"""Authorization: role-based permission resolution for issued session tokens."""
