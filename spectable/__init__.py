"""Specification table template resolution service."""
