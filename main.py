from paytag.config.logging import setup_logging
from paytag.config.settings import Settings
from paytag.adapters.http import HttpxHttpClient
from paytag.api import create_app
from paytag.factories import create_forwarder, create_passthrough

settings = Settings()

# Setup logging first
setup_logging(settings.log_level)

# One upstream client shared by the forwarder and the passthrough endpoints
http_client = HttpxHttpClient(timeout=settings.upstream_timeout_seconds)

# Create the FastAPI relay app with all components
app = create_app(
    settings,
    forwarder=create_forwarder(settings, http_client),
    passthrough=create_passthrough(settings, http_client),
    on_shutdown=http_client.close,
)


def main():
    import uvicorn
    from paytag.config.logging import get_uvicorn_log_level

    # Get log level for uvicorn
    log_level = get_uvicorn_log_level(settings.log_level)

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        log_level=log_level
    )


if __name__ == "__main__":
    main()
