"""Fetching, scraping, batching and crawling."""
