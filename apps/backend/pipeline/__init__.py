"""
Job ingestion pipeline: typed records, filtering, organization matching
and persistence.

Scraped postings flow through JobFilter, then DBInsert, which resolves each
company to an organization with OrganizationMatcher before inserting the job.
"""

__version__ = "1.0.0"
