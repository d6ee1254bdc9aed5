"""Workloads run inside supervised children."""
