"""Error taxonomy for setup-time failures."""


class ConfigurationError(ValueError):
    """Required configuration is missing (e.g. no API key)."""


class InvalidScheduleError(ValueError):
    """Cron pattern or timezone rejected before a timer is registered."""
