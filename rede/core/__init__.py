"""Core rede pipelines: metadata canonicalization and TOTP authentication."""
