"""
Contest Sync Service

Keeps the local contest store in step with the Caixa API.

Key components:
- Adapters: Fetch contests from the upstream API
- Window: Merge/trim rules for the per-game contest window
- Orchestrator: Bootstrap and incremental synchronization passes
- Snapshot: Latest-results side document
"""
