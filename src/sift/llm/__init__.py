"""Reasoning service client."""
