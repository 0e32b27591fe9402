"""
Custom exceptions for the CUBRID exporter.
Per-scraper failures are recorded as metrics; only connection failures end a cycle.
"""


class BaseExporterException(Exception):
    """Base exception for the CUBRID exporter"""
    pass


class ConnectionOpenError(BaseExporterException):
    """Error opening the per-cycle connection to the CUBRID server"""
    pass


class ConnectionExpiredError(BaseExporterException):
    """Connection outlived its maximum lifetime or was already closed"""
    pass


class DeadlineExceededError(BaseExporterException):
    """Scrape deadline passed before the operation could complete"""
    pass


class ScrapeError(BaseExporterException):
    """Generic error while running a scraper"""
    pass


class SampleParseError(ScrapeError):
    """A required numeric field could not be parsed"""
    pass


class ConfigurationError(BaseExporterException):
    """Error in configuration loading or validation"""
    pass
