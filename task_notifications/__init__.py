"""Task notifications service."""
