# extractor/config.py
import os

# -----------------------
# Filter defaults
# -----------------------
# Logon, failed logon, special privileges, Kerberos TGT/TGS, NTLM validation
DEFAULT_EVENT_IDS = frozenset({4624, 4625, 4672, 4768, 4769, 4776})

DEFAULT_THREADS = max(1, os.cpu_count() or 1)

# -----------------------
# Input / output
# -----------------------
EVTX_SUFFIX = ".evtx"
EVTX_MAGIC = b"ElfFile\x00"  # EVTX file header signature

ROOT_ELEMENT = "Events"
XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'
PARTIAL_SUFFIX = ".partial"

# -----------------------
# Logging
# -----------------------
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
