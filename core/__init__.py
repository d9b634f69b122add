"""
conflict-atlas core package.

Modules
───────
models          — Pydantic data models (SummaryTarget, SummaryRecord, DisplacementSnapshot, ...)
errors          — error taxonomy, each error mapped to an HTTP status
db              — SQLite connection handling and schema
summary_store   — cached summaries (get, upsert)
summarizer      — prompts + Claude API generation
summary_service — cache-or-generate-and-upsert for conflict/country summaries
geo             — point-in-polygon country resolution
iso3            — UCDP country id → ISO3 (static table, memo, polygons)
ucdp            — UCDP GED client and aggregation
displacement    — UNHCR displacement lookup
dashboards      — per-user dashboard layouts
"""
