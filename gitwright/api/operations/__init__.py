"""Operation submission, status and cancellation resources."""
