"""
Proximity search engine.

Responsibilities:
- Validate area queries (centre, radius, page window, filters).
- Cut candidates to the search circle with great-circle distance.
- Tag listings with pickup urgency and drop expired ones.
- Filter, rank (distance-first or urgency-first) and paginate results.
"""
