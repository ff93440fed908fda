"""
Audit engine.

Modules
-------
rules        : stateless rule functions, one finding (or None) per check.
orchestrator : AuditOrchestrator; runs every rule over a batch and builds
               the AuditReport (risk level, compliance, recommendations).
"""
