"""
Domain exceptions shared by ingestion, sync, verification and API.
"""
