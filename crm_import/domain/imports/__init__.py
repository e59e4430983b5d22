"""
Bulk import pipeline for contacts, leads and clients.

parse -> auto-map columns -> validate -> transform -> duplicate-aware upsert.
"""
