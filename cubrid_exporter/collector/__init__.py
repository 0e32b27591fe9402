"""
Scrapers, the per-cycle connection and the scrape orchestrator.
"""
