"""
Services module for the Auction Lot Crawler.

Contains:
- taxonomy: read-only reference taxonomy cache
- brand_model_normalizer: brand/model matching against the taxonomy
- vehicle_classifier: multi-layer vehicle-type classification
- lot_transformer: raw payload to CanonicalLot
- crawl_orchestrator: pagination, facet replay, dedup and retries
- lot_persistence: normalize/classify/score and idempotent upsert
- crawl_batch: sequential multi-house batch runner
- taxonomy_sync: reference taxonomy download from the public price API
"""
