"""
Configuration for the workbench.

All configuration is loaded from environment variables, with defaults
suitable for an interactive session. Timeouts are in seconds here; tool
arguments take milliseconds and are converted at the tool boundary.
"""

import os
import sys
from dataclasses import dataclass, field


@dataclass
class ExecutionConfig:
    """
    Configuration for the execution channel and its worker.

    Every request kind has its own deadline. test_timeout is shorter than
    run_timeout since validation runs are expected to be quick.
    """
    run_timeout: float = 30.0
    test_timeout: float = 15.0
    init_timeout: float = 60.0
    install_timeout: float = 300.0
    python_executable: str = field(default_factory=lambda: sys.executable)
    entry_point: str = "main.py"
    session_history: int = 50

    @classmethod
    def from_env(cls) -> "ExecutionConfig":
        """Load configuration from environment variables."""
        return cls(
            run_timeout=float(os.getenv("WORKBENCH_RUN_TIMEOUT", "30")),
            test_timeout=float(os.getenv("WORKBENCH_TEST_TIMEOUT", "15")),
            init_timeout=float(os.getenv("WORKBENCH_INIT_TIMEOUT", "60")),
            install_timeout=float(os.getenv("WORKBENCH_INSTALL_TIMEOUT", "300")),
            python_executable=os.getenv("WORKBENCH_PYTHON", sys.executable),
            entry_point=os.getenv("WORKBENCH_ENTRY_POINT", "main.py"),
            session_history=int(os.getenv("WORKBENCH_SESSION_HISTORY", "50")),
        )


@dataclass
class RegistryConfig:
    """Configuration for the tool registry."""
    max_events: int = 10000

    @classmethod
    def from_env(cls) -> "RegistryConfig":
        """Load configuration from environment variables."""
        return cls(
            max_events=int(os.getenv("WORKBENCH_MAX_EVENTS", "10000")),
        )


@dataclass
class TurnConfig:
    """
    Configuration for tool-call sequences.

    max_calls is a safety limit on how many tool calls one turn may run.
    """
    max_calls: int = 50

    @classmethod
    def from_env(cls) -> "TurnConfig":
        """Load configuration from environment variables."""
        return cls(
            max_calls=int(os.getenv("WORKBENCH_TURN_MAX_CALLS", "50")),
        )


@dataclass
class WorkbenchConfig:
    """Combined configuration for a workbench session."""
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    turn: TurnConfig = field(default_factory=TurnConfig)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "WorkbenchConfig":
        """Load all configuration from environment variables."""
        return cls(
            execution=ExecutionConfig.from_env(),
            registry=RegistryConfig.from_env(),
            turn=TurnConfig.from_env(),
            log_level=os.getenv("WORKBENCH_LOG_LEVEL", "WARNING").upper(),
        )
