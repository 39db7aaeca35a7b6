# Tests Package
"""
Test suite for the remediation store.

- unit/: Component-level tests
- integration/: End-to-end flows over in-memory and embedded Qdrant stores
"""
