"""End-to-end tests driving the service and the command line."""
