"""Process-wide plumbing shared by the API layer."""
