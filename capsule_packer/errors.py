"""Exceptions raised while assembling capsules."""


class BuildError(RuntimeError):
    """Raised when building a capsule fails."""


class ConfigurationError(BuildError):
    """Raised when the capsule configuration cannot be used as given."""


class ResolutionError(BuildError):
    """Raised when the capsule runtime artifact or its versions cannot be resolved."""
