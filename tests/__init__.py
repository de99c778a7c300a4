"""
Session Core Testing Infrastructure
===================================

Test suite for the kasina session core with mock implementations and
fixtures for isolated component testing.

Modules:
    mocks.clock: Manually advanced clock
    mocks.submission: Mock submission service
    mocks.storage: Store with configurable write failures
    conftest: Pytest configuration and fixtures

Version: 1.0.0
"""
