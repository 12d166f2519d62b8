"""
Tests for configuration loading and package name handling.
"""

import sys

from pyworkbench.config import ExecutionConfig, WorkbenchConfig
from pyworkbench.packages import InstalledPackageSet, normalize_package_name


class TestConfig:
    """Test environment-driven configuration."""

    def test_defaults(self, monkeypatch) -> None:
        for name in ("WORKBENCH_RUN_TIMEOUT", "WORKBENCH_PYTHON", "WORKBENCH_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        config = WorkbenchConfig.from_env()
        assert config.execution.run_timeout == 30.0
        assert config.execution.python_executable == sys.executable
        assert config.log_level == "WARNING"
        assert config.turn.max_calls == 50

    def test_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("WORKBENCH_RUN_TIMEOUT", "2.5")
        monkeypatch.setenv("WORKBENCH_ENTRY_POINT", "app.py")
        monkeypatch.setenv("WORKBENCH_MAX_EVENTS", "10")
        monkeypatch.setenv("WORKBENCH_TURN_MAX_CALLS", "3")
        monkeypatch.setenv("WORKBENCH_LOG_LEVEL", "debug")
        config = WorkbenchConfig.from_env()
        assert config.execution.run_timeout == 2.5
        assert config.execution.entry_point == "app.py"
        assert config.registry.max_events == 10
        assert config.turn.max_calls == 3
        assert config.log_level == "DEBUG"

    def test_test_timeout_is_shorter(self) -> None:
        config = ExecutionConfig()
        assert config.test_timeout < config.run_timeout


class TestPackageNames:
    """Test package name normalization."""

    def test_normalize(self) -> None:
        assert normalize_package_name("Foo_Bar") == "foo-bar"
        assert normalize_package_name(" zope.interface ") == "zope-interface"
        assert normalize_package_name("a--_.b") == "a-b"

    def test_set(self) -> None:
        packages = InstalledPackageSet()
        assert packages.add("PyYAML") == "pyyaml"
        assert "pyyaml" in packages
        assert packages.contains("PYYAML")
        assert 3 not in packages
        assert list(packages) == ["pyyaml"]
        packages.reset()
        assert len(packages) == 0
