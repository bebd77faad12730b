"""External API clients.

Submodules:
    dropbox -- Dropbox API v2 client (listing, download, upload, account check)
"""
