"""Concrete benchmarks against external systems."""
