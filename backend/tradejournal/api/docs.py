"""
API Documentation Configuration

OpenAPI metadata and tags.
"""

from tradejournal import __version__

# =============================================================================
# API Tags for Organization
# =============================================================================

tags_metadata = [
    {
        "name": "Health",
        "description": "System health checks and status monitoring",
    },
    {
        "name": "Rules",
        "description": "Trading rule management, version ledger and per-rule history",
    },
    {
        "name": "Rule History",
        "description": "Journal-wide history log and rules active on a given day",
    },
]


# =============================================================================
# API Description
# =============================================================================

description = """
## TradeJournal API

Trading rule journal with a full audit of every change:

* **Rules**: create, edit, activate/deactivate and delete trading rules
* **Versions**: every change stores a complete, numbered snapshot of the rule
* **History**: semantic events (created, updated, activated, deactivated, deleted)
* **Activity**: which rules were active on any past day

### Responses

Every endpoint returns the same envelope:
```json
{
    "success": false,
    "data": null,
    "error": "Rule 3f0c... not found",
    "code": "not_found"
}
```

Error codes map to status codes: `validation_error` → 422,
`not_found` → 404, `persistence_error` → 503.
"""


# =============================================================================
# OpenAPI Configuration
# =============================================================================

openapi_config = {
    "title": "TradeJournal API",
    "description": description,
    "version": __version__,
    "license_info": {
        "name": "MIT License",
        "url": "https://opensource.org/licenses/MIT",
    },
    "openapi_tags": tags_metadata,
}
