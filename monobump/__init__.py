"""monobump - changeset-driven versioning for JavaScript monorepos."""
