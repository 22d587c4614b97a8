"""Packaged JSON schemas for scaffoldx configuration documents."""
