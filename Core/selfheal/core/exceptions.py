class HealingError(RuntimeError):
    """Raised when the remediation pipeline cannot continue."""


class ProcessLaunchError(HealingError):
    """Raised when the test-run command cannot be started."""


class MonitorStateError(HealingError):
    """Raised when a monitor is asked to start while a run is active."""


class ProbeError(HealingError):
    """Raised when the live browser session cannot be opened or driven."""


class PatchTargetNotFound(HealingError):
    """Raised internally when an edit finds nothing to replace."""
