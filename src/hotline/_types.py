"""Shared type definitions for hotline."""

from collections.abc import Awaitable, Callable
from typing import Literal, TypeAlias

# Absolute path of a source file known to the packager
FilePath: TypeAlias = str

# Name a module is registered under in the bundle
ModuleName: TypeAlias = str

# Target platform of a bundle (e.g., "ios", "android")
Platform: TypeAlias = str

# Connection kind on the debugger proxy endpoint
Role: TypeAlias = Literal["debugger", "client"]

# Which branch of the diffing state machine produced an update
UpdateKind: TypeAlias = Literal["shallow", "structural"]

# File change listener registered with a ChangeSource
ChangeListener: TypeAlias = Callable[[FilePath, Awaitable[object]], Awaitable[None]]
