"""
Async client for the clinic API: bearer auth with a single coalesced token
refresh, bounded exponential backoff on transient failures and cooperative
cancellation.
"""
