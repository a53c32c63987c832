"""SpotPulse core source package.

This package contains the components of the market results scraper:
- policy: retry state machine driving a document session
- extractor: selector resolution and row extraction
- session / static_document: live Playwright and offline HTML sessions
- browser: Playwright lifecycle management
- url_builder: delivery-date URL construction
- sink: CSV export of extracted records
- validator: Pydantic schema for market records
- diagnostics: network reachability probe
- logger: structured JSON logging configuration
- exceptions: custom exception hierarchy
"""

__version__ = "1.0.0"
