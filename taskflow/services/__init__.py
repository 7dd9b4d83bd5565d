"""Business logic for TaskFlow resources."""
