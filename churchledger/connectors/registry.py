"""Lookup of ledger providers by URL name."""
from typing import Optional

from churchledger.connectors.base import LedgerProvider
from churchledger.connectors.quickbooks import QuickBooksProvider
from churchledger.connectors.xero import XeroProvider

PROVIDERS: dict[str, LedgerProvider] = {
    p.name: p for p in (QuickBooksProvider(), XeroProvider())
}


def get_provider(name: str) -> Optional[LedgerProvider]:
    return PROVIDERS.get(name.lower())
