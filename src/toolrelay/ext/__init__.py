"""Integrations with external tool protocols."""
