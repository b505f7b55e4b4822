"""
Image URL crawler that performs BFS traversal of a list of domains.
Reports progress as events and collects a deduplicated set of image URLs.
"""
from imgcrawler.core import CrawlConfig, DomainCrawler, Orchestrator, start
from imgcrawler.events import CrawlEvent, EventLog, EventType
from imgcrawler.jobs import CrawlJob, CrawlerError, DomainListError, JobRegistry, JobStatus, run_job
from imgcrawler.results import ResultSink

__version__ = "1.0.0"
__all__ = [
    "start",
    "run_job",
    "CrawlConfig",
    "CrawlEvent",
    "CrawlJob",
    "CrawlerError",
    "DomainCrawler",
    "DomainListError",
    "EventLog",
    "EventType",
    "JobRegistry",
    "JobStatus",
    "Orchestrator",
    "ResultSink",
]
