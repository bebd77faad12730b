"""Image Enhance Pipeline -- enhance images dropped into a Dropbox folder.

Core modules:
    config        -- Pipeline configuration via pydantic-settings (.env + env vars)
    cli           -- Click CLI: run (process new images), check, status
    orchestrator  -- One run: read cursor, scan, schedule jobs, summarize
    scanner       -- Cursor-paginated delta scan with per-entry skip reasons
    concurrency   -- Bounded job scheduler and single-instance file lock
    enhance       -- OpenAI image enhancement (responses / generate strategies)
    cursor_store  -- SQLite persistence for the listing cursor
    paths         -- Image/root path predicates and output path derivation
    errors        -- Exception hierarchy and one-line error diagnostics

Subpackages:
    api -- External API clients (Dropbox)
"""
