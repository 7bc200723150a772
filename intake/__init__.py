"""Backend package: DB models, ingestion pipeline, APIs.

This package accepts contractor onboarding forms with document uploads,
persists each submission as one record and lists them back.
"""
