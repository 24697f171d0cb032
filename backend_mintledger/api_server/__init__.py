"""
API server package — HTTP interface over mint history and transfer verification.
"""
