"""Shared test fixtures for confluence-mirror tests."""
