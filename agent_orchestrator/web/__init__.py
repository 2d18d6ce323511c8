"""HTTP transport for the orchestrator service."""
