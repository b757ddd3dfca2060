class WealthBuilderError(Exception):
    """Base class for errors raised by wealth_builder."""

class InvalidConfigError(WealthBuilderError, ValueError):
    """The simulation config failed validation; nothing was run."""

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("invalid simulation config: " + "; ".join(self.problems))

class SimulationError(WealthBuilderError, RuntimeError):
    """The engine reached a numeric state it cannot recover from."""
