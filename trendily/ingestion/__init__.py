"""
Ingestion layer: trend source interface and provider clients.

Submodules:
  base                  TrendSource interface
  serpapi_client        SerpAPI google_trends engine (primary)
  google_trends_client  pytrends fallback (no credential)
  trend_source          Ordered fallback chain over providers

Credential placement (.env, gitignored):
  TRENDILY_SERPAPI_KEY   SerpAPI key (SERPAPI_KEY also accepted)
"""
