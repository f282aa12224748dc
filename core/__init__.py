"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Injectable time abstraction
- config: Environment-driven runner configuration
- exceptions: Typed failure taxonomy
- constants: Module/run vocabularies and limits
"""
