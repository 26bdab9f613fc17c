"""
File workers for evtx-extractor.

A handler turns one input file into a stream of matching XML fragments plus a
`FileReport`. Only EVTX is supported; see evtx.py.
"""

from .evtx import EvtxHandler

__all__ = ["EvtxHandler"]
