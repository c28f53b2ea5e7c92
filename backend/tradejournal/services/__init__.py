"""
Services Layer
TradeJournal Backend

Business logic for the trading rule journal:

Write side:
    - RuleLifecycleService: create/update/toggle/delete with versions and history

Read side:
    - RuleHistoryService: rules, history log, version ledger, activity by day

Tooling:
    - admin: version backfill and store clearing
    - fixtures: seedable generator of backdated rule activity
"""
