"""
Agent worker — background sync of the mint log, independent of API traffic.
"""
