"""Authentication and authorization for TaskFlow."""
