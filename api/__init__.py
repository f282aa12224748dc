"""
HTTP adapter over ModuleRunnerService.
"""
