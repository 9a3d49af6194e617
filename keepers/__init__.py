"""
Keepers
=======

Keeper decision logic run by the Gelato Web3 Functions runtime at trigger time.
Each keeper reads fresh on-chain state and either reports that nothing needs to
be done or proposes the calls to execute.

Keepers:
- xchain-oracle-ticker: Refreshes cross-chain DSR oracle data when stale
"""

from . import xchain_oracle_ticker

KEEPERS = {
    'xchain-oracle-ticker': xchain_oracle_ticker.on_run,
}

__all__ = ['KEEPERS']
