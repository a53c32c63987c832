"""Test suite for SpotPulse.

This package contains hermetic tests following the pytest framework.
Tests are structured to mirror the spotpulse/ package hierarchy for discoverability.

Testing Philosophy:
    - Use pytest-mock and responses for network isolation
    - Focus coverage on the extraction policy and row filtering rules
    - Avoid external dependencies - all I/O should be mocked
"""
