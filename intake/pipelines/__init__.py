"""Ingestion pipeline for multipart form submissions.

Part classification, file sinks, assembly and the per-request orchestration
are separate modules so each step can be exercised on its own.
"""
