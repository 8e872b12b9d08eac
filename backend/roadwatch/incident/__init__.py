"""
Community Incident Reports Module

Lifecycle management for user-submitted road incident reports.

Components:
- IncidentStore: Time-decaying, community-validated report collection
- ReputationLedger: Reporter reputation fed by store deltas

Usage:
    from roadwatch.incident import (
        init_reputation_ledger,
        init_incident_store,
        IncidentType,
    )

    ledger = init_reputation_ledger()
    store = init_incident_store(config, reputation_sink=ledger.apply)
    await store.start_sweeper()

    report = store.add(IncidentType.CRASH, coordinate)
    result = store.confirm(report.id, is_positive=True)
"""

from roadwatch.incident.incident_store import (
    IncidentStore,
    IncidentType,
    IncidentEvent,
    IncidentReport,
    VoteResult,
    ReportNotFoundError,
    init_incident_store,
    get_incident_store,
    set_incident_store,
)

from roadwatch.incident.reputation import (
    ReputationLedger,
    init_reputation_ledger,
    get_reputation_ledger,
    set_reputation_ledger,
)

__all__ = [
    # Incident Store
    'IncidentStore',
    'IncidentType',
    'IncidentEvent',
    'IncidentReport',
    'VoteResult',
    'ReportNotFoundError',
    'init_incident_store',
    'get_incident_store',
    'set_incident_store',

    # Reputation
    'ReputationLedger',
    'init_reputation_ledger',
    'get_reputation_ledger',
    'set_reputation_ledger',
]
