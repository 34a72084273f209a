"""
WingetWizard - Test Helpers

Provides utilities for testing:
- Recorded winget output
- Fake runner and providers
- Fixture builders
"""
