"""Message history monitor — read-only projection over the message log.

The monitor never keeps its own state.  Every call re-reads the log store.

Modules
-------
projection
    ``MessageHistoryProjection`` reads the log store and produces frozen
    ``ApplicationHistory``, ``MessageChain`` and ``DeliverySummary`` models.
renderer
    ``HistoryRenderer`` turns those models into Rich renderables.
"""
