"""Core plumbing shared by every command."""
