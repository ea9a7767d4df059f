"""
Library Sync Service

Merges a user's game libraries from Steam, PlayStation and Riot into one
deduplicated library keyed by IGDB catalog id.

Key components:
- Adapters: Fetch each platform's library as RawPlatformGame records
- Matchers: Resolve raw games to catalog entries (exact ids, then fuzzy names)
- Reconciler: Insert or partially update library entries
- Synchronizer: Drive fetch, match and reconcile for one platform
- Orchestrator: Wire platforms together and record sync metadata
"""
