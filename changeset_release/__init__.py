"""changeset-release: changeset-driven release planning for monorepos."""
