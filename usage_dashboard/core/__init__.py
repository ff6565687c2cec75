"""
Core modules for the usage dashboard.

This package contains the ingestion pipeline: record extraction, session
scanning, aggregation, tip generation, quota fetching and the refresh cycle.
"""
