"""
Prometheus exporter for CUBRID database servers.
"""
__version__ = "0.1.0"
