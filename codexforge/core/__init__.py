"""Codex Forge core: canonical form, integrity, signing, validation and the entry builder."""
