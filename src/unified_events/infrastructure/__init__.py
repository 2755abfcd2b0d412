"""
Infrastructure Layer - External Systems Integration

Contains:
- http: shared httpx client base
- sources: provider adapters (Ticketmaster, Eventbrite, RapidAPI, PredictHQ)
- geocoding: address to coordinates resolvers
- cache: two-tier result cache
"""
