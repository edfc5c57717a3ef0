"""REST API for crawl runs and crawl triggering."""
