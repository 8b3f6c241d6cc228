"""Durable local storage for swap secrets."""
