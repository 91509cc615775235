"""Pulumi engine discovery, installation, environment and command wrapper."""

from engine.environment import EngineEnvironment, build_env
from engine.locator import BinaryLocator, LocatorResult
from engine.workspace import PulumiWorkspace, StackSummary, UpdateSummary

__all__ = [
    'BinaryLocator',
    'EngineEnvironment',
    'LocatorResult',
    'PulumiWorkspace',
    'StackSummary',
    'UpdateSummary',
    'build_env',
]
