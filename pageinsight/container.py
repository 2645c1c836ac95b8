"""Dependency injection container for the application."""
from dependency_injector import containers, providers

from pageinsight import config as env
from pageinsight.services.analysis_service import AnalysisService
from pageinsight.services.engine import Engine
from pageinsight.services.fetcher import HttpFetcher
from pageinsight.services.html_extractor import HtmlExtractor
from pageinsight.services.link_prober import LinkProber
from pageinsight.services.safe_transport import build_session

# Connections kept per host for the single page fetch.
PAGE_FETCH_POOL_SIZE = 10


# Environment variables used by the container (read via `pageinsight.config` helpers).
#
# HOST (str, default: "0.0.0.0") / PORT (int, default: 8080)
#   Listen address for the API server. PORT must be 1-65535.
#
# LOG_LEVEL (str, default: "ERROR")
#   DEBUG, INFO, WARNING or ERROR. Unrecognised values fall back to ERROR.
#
# LINK_CHECK_CONCURRENCY (int, default: 25)
#   Worker pool size of the link prober, 1-100. Also sizes its connection pool.
#
# FETCH_TIMEOUT_SECONDS (float, default: 10)
#   Time budget for fetching and reading the analysed page.
#
# PROBE_TIMEOUT_SECONDS (float, default: 4)
#   Timeout for each HEAD/GET issued by the link prober.
#
# ANALYZE_TIMEOUT_SECONDS (float, default: 60)
#   Overall deadline for one /analyze request.
#
# SHUTDOWN_TIMEOUT_SECONDS (float, default: 10)
#   Grace period for in-flight requests on shutdown.
#
# USER_AGENT (str, default: "PageInsightBot/1.0")
#   User-Agent header for outbound requests.
#
# CORS_ALLOWED_ORIGINS (comma-separated, default: "*")
ENV = {
    "HOST": env.get_str_env("HOST", "0.0.0.0"),
    "PORT": env.get_int_env("PORT", 8080),
    "LOG_LEVEL": env.get_str_env("LOG_LEVEL", "ERROR").strip().upper(),
    "LINK_CHECK_CONCURRENCY": env.get_int_env("LINK_CHECK_CONCURRENCY", 25),
    "FETCH_TIMEOUT_SECONDS": env.get_float_env("FETCH_TIMEOUT_SECONDS", 10.0),
    "PROBE_TIMEOUT_SECONDS": env.get_float_env("PROBE_TIMEOUT_SECONDS", 4.0),
    "ANALYZE_TIMEOUT_SECONDS": env.get_float_env("ANALYZE_TIMEOUT_SECONDS", 60.0),
    "SHUTDOWN_TIMEOUT_SECONDS": env.get_float_env("SHUTDOWN_TIMEOUT_SECONDS", 10.0),
    "USER_AGENT": env.get_str_env("USER_AGENT", "PageInsightBot/1.0"),
    "CORS_ALLOWED_ORIGINS": env.get_list_env("CORS_ALLOWED_ORIGINS", ["*"]),
}


class Container(containers.DeclarativeContainer):
    """Dependency injection container for PageInsight."""

    config = providers.Configuration(default=ENV)

    # Sessions - Singleton to share one connection pool per role
    page_session = providers.Singleton(
        build_session,
        pool_size=PAGE_FETCH_POOL_SIZE,
        user_agent=config.USER_AGENT.as_(str),
    )

    probe_session = providers.Singleton(
        build_session,
        pool_size=config.LINK_CHECK_CONCURRENCY.as_(int),
        user_agent=config.USER_AGENT.as_(str),
    )

    page_fetcher = providers.Singleton(
        HttpFetcher,
        session=page_session,
        user_agent=config.USER_AGENT.as_(str),
        timeout=config.FETCH_TIMEOUT_SECONDS.as_(float),
    )

    link_prober = providers.Singleton(
        LinkProber,
        session=probe_session,
        concurrency=config.LINK_CHECK_CONCURRENCY.as_(int),
        timeout=config.PROBE_TIMEOUT_SECONDS.as_(float),
        user_agent=config.USER_AGENT.as_(str),
    )

    html_extractor = providers.Singleton(HtmlExtractor)

    engine = providers.Singleton(
        Engine,
        fetcher=page_fetcher,
        prober=link_prober,
        extractor=html_extractor,
    )

    analysis_service = providers.Singleton(
        AnalysisService,
        analyzer=engine,
    )
