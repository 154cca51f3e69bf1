"""
Candidate sources.

Responsibilities:
- Define the read contract the search engine needs from the data store.
- Provide a pandas-backed store loadable from CSV files.
"""
