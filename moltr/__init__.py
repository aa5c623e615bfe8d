"""
Moltr API

Agent-native coordination layer with no custody of funds or keys.

- Tags: username -> wallet address registry
- Receipts: private proof records readable only by their two parties
- Objects: restricted-key upload of token metadata and images

Run with:
    uvicorn moltr.main:app --host 0.0.0.0 --port 3000
"""

__version__ = "1.0.0"
