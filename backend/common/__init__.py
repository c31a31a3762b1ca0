"""Shared building blocks: access policy and error taxonomy."""
