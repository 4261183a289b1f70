"""Exception hierarchy for sitedeploy.

Expected conditions (no updates, timeouts, account restrictions) are reported
as structured results; these exceptions cover configuration problems and the
failures callers are meant to catch.
"""


class SiteDeployError(Exception):
    """Base error for sitedeploy."""


class ConfigError(SiteDeployError):
    """Raised when the deployment configuration or environment is invalid."""


class DnsProviderError(SiteDeployError):
    """Raised when a DNS provider API call fails on a read."""


class BucketCleanupTimeout(SiteDeployError):
    """Raised when emptying an orphaned bucket exceeds its time budget."""


class PollTimeout(SiteDeployError):
    """Raised when a polling loop exhausts its attempt budget.

    ``last`` holds the value returned by the final attempt so callers can
    report the last known status.
    """

    def __init__(self, message: str, last=None, attempts: int = 0):
        super().__init__(message)
        self.last = last
        self.attempts = attempts
