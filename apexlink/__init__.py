"""ApexLink - peer-to-peer collaborative editing client.

The client supervises the apexlink-daemon subprocess and keeps editor
buffers in sync with it over a line-delimited JSON protocol.
"""

__version__ = "0.1.0"
