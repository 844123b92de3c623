"""Core - serial allocation, rendering and errors."""
