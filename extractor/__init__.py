"""
evtx-extractor: pull selected records out of Windows EVTX logs into one XML document.

Files are processed in parallel; matched records stream into a single
`<Events>` document owned by `extractor.writer.XmlAggregator`.
"""

__version__ = "0.3.0"
