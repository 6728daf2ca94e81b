"""
Background jobs - GitHub sync and the daily market data refresh.
"""
