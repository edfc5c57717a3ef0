"""
Auction lots Django application.

This app collects vehicle lots from auction-house websites, normalizes
brand/model text against the reference taxonomy, classifies vehicle types
and persists deduplicated lots for downstream search.
"""
